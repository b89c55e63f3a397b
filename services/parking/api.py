# ============================================================
# Parking API Router
# ------------------------------------------------------------
# Expose les endpoints REST : parkings et étages, disponibilité
# et prix en direct, réservation, annulation et historique.
# L'identité de l'appelant arrive dans l'en-tête X-User-Id,
# posé par le fournisseur de session devant ce service.
# ============================================================
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from parking.db import engine
from parking.ledger import ReservationLedger
from parking.models import Reservation, ReservationCreate, VehicleType, to_local
from parking.service import ReservationService

router = APIRouter()

ledger = ReservationLedger(engine)
service = ReservationService(engine, ledger)


# Dépendance FastAPI : un service (et ses verrous de slot) par processus
def get_service() -> ReservationService:
    return service


def get_owner(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(401, "missing X-User-Id")
    return x_user_id


def reservation_out(r: Reservation, svc: ReservationService) -> dict:
    return {
        "id": r.id,
        "code": r.code,
        "lot_id": r.lot_id,
        "floor_id": r.floor_code,
        "slot_id": r.slot_code,
        "vehicle_type": VehicleType(r.vehicle_type).value,
        "owner": r.owner,
        "start": to_local(r.start),
        "end": to_local(r.end),
        "duration_hours": r.duration_hours,
        "price": r.price,
        "status": svc.status_of(r).value,
        "created_at": to_local(r.created_at),
    }


# ------------------------------------------------------------
# Catalogue
# ------------------------------------------------------------
@router.get("/v1/lots")
def list_lots(q: Optional[str] = None, start: Optional[datetime] = None, duration_hours: int = 1,
              svc: ReservationService = Depends(get_service)):
    window = svc.window(start, duration_hours)
    return [
        {
            "id": row["lot"].id,
            "name": row["lot"].name,
            "location": row["lot"].location,
            "price_per_hour": row["lot"].price_per_hour,
            "available_slots": row["available"],
            "total_slots": row["total"],
            "vehicle_types": row["vehicle_types"],
        }
        for row in svc.lot_summaries(window, q)
    ]


@router.get("/v1/lots/{lot_id}")
def get_lot(lot_id: str, svc: ReservationService = Depends(get_service)):
    lot = svc.get_lot(lot_id)
    floors = svc.list_floors(lot_id)
    return {
        "id": lot.id,
        "name": lot.name,
        "location": lot.location,
        "price_per_hour": lot.price_per_hour,
        "floors": [{"id": f.code, "name": f.name} for f in floors],
    }


# ------------------------------------------------------------
# GET .../slots - grille des slots avec un indicateur de disponibilité
# ------------------------------------------------------------
@router.get("/v1/lots/{lot_id}/floors/{floor_id}/slots")
def floor_slots(lot_id: str, floor_id: str, start: Optional[datetime] = None, duration_hours: int = 1,
                vehicle_type: Optional[VehicleType] = None, svc: ReservationService = Depends(get_service)):
    window = svc.window(start, duration_hours)
    return {
        "lot_id": lot_id,
        "floor_id": floor_id,
        "start": to_local(window.start),
        "end": to_local(window.end),
        "slots": [
            {"id": slot.code, "number": slot.number,
             "vehicle_type": VehicleType(slot.vehicle_type).value, "available": free}
            for slot, free in svc.slot_grid(lot_id, floor_id, window, vehicle_type)
        ],
    }


@router.get("/v1/lots/{lot_id}/floors/{floor_id}/availability")
def floor_availability(lot_id: str, floor_id: str, start: Optional[datetime] = None, duration_hours: int = 1,
                       vehicle_type: Optional[VehicleType] = None,
                       svc: ReservationService = Depends(get_service)):
    window = svc.window(start, duration_hours)
    available = svc.list_available(lot_id, floor_id, window, vehicle_type)
    return {"start": to_local(window.start), "end": to_local(window.end), "available": sorted(available)}


@router.get("/v1/quote")
def quote(lot_id: str, floor_id: str, slot_id: str, duration_hours: int,
          svc: ReservationService = Depends(get_service)):
    return {"duration_hours": duration_hours, "price": svc.quote(lot_id, floor_id, slot_id, duration_hours)}


# ------------------------------------------------------------
# POST /v1/reservations - Réserver un slot
# ------------------------------------------------------------
# 201 avec la réservation, 409 si la fenêtre est déjà prise,
# 404 pour un parking/étage/slot inconnu.
# ------------------------------------------------------------
@router.post("/v1/reservations", status_code=201)
def create_reservation(body: ReservationCreate, owner: str = Depends(get_owner),
                       svc: ReservationService = Depends(get_service)):
    r = svc.reserve(body.lot_id, body.floor_id, body.slot_id, owner, body.start, body.duration_hours)
    return reservation_out(r, svc)


@router.get("/v1/reservations")
def list_reservations(owner: str = Depends(get_owner), svc: ReservationService = Depends(get_service)):
    return [reservation_out(r, svc) for r in svc.list_reservations(owner)]


# Page "Mes réservations" : d'abord celles à venir, puis le reste
@router.get("/v1/reservations/history")
def booking_history(owner: str = Depends(get_owner), svc: ReservationService = Depends(get_service)):
    upcoming, past = svc.booking_history(owner)
    return {"upcoming": [reservation_out(r, svc) for r in upcoming],
            "past": [reservation_out(r, svc) for r in past]}


@router.get("/v1/reservations/{reservation_id}")
def get_reservation(reservation_id: int, owner: str = Depends(get_owner),
                    svc: ReservationService = Depends(get_service)):
    return reservation_out(svc.get_reservation(reservation_id, owner), svc)


# Données du reçu que le client encode dans le QR code
@router.get("/v1/reservations/{reservation_id}/ticket")
def get_ticket(reservation_id: int, owner: str = Depends(get_owner),
               svc: ReservationService = Depends(get_service)):
    return svc.ticket(reservation_id, owner)


@router.post("/v1/reservations/{reservation_id}/cancel")
def cancel_reservation(reservation_id: int, owner: str = Depends(get_owner),
                       svc: ReservationService = Depends(get_service)):
    return reservation_out(svc.cancel(reservation_id, owner), svc)
