# ============================================================
# registry.py - Registre des slots
# ------------------------------------------------------------
# Lectures seules sur le catalogue (parkings, étages, slots) et
# initialisation idempotente du catalogue de démo. Un slot est
# désigné par ses codes : (lot_id, code étage, code slot).
# ============================================================
import logging

from sqlalchemy import func, or_
from sqlmodel import Session, select

from parking.errors import FloorNotFound, LotNotFound, SlotNotFound
from parking.models import Floor, ParkingLot, Slot, VehicleType

log = logging.getLogger(__name__)


class SlotRegistry:
    def __init__(self, session: Session):
        self.session = session

    def list_lots(self, query: str = None):
        stmt = select(ParkingLot).order_by(ParkingLot.id)
        if query:
            pattern = f"%{query.lower()}%"
            stmt = stmt.where(or_(func.lower(ParkingLot.name).like(pattern),
                                  func.lower(ParkingLot.location).like(pattern)))
        return self.session.exec(stmt).all()

    def get_lot(self, lot_id: str) -> ParkingLot:
        lot = self.session.get(ParkingLot, lot_id)
        if not lot:
            raise LotNotFound(f"parking lot {lot_id} not found")
        return lot

    def list_floors(self, lot_id: str):
        self.get_lot(lot_id)
        return self.session.exec(
            select(Floor).where(Floor.lot_id == lot_id).order_by(Floor.position, Floor.id)
        ).all()

    def get_floor(self, lot_id: str, floor_id: str) -> Floor:
        self.get_lot(lot_id)
        floor = self.session.exec(
            select(Floor).where(Floor.lot_id == lot_id, Floor.code == floor_id)
        ).first()
        if not floor:
            raise FloorNotFound(f"floor {floor_id} not found in lot {lot_id}")
        return floor

    def list_slots(self, lot_id: str, floor_id: str):
        floor = self.get_floor(lot_id, floor_id)
        return self.session.exec(
            select(Slot).where(Slot.floor_id == floor.id).order_by(Slot.number)
        ).all()

    def get_slot(self, lot_id: str, floor_id: str, slot_id: str) -> Slot:
        floor = self.get_floor(lot_id, floor_id)
        slot = self.session.exec(
            select(Slot).where(Slot.floor_id == floor.id, Slot.code == slot_id)
        ).first()
        if not slot:
            raise SlotNotFound(f"slot {slot_id} not found on floor {floor_id}")
        return slot

    def vehicle_types(self, lot_id: str):
        rows = self.session.exec(
            select(Slot.vehicle_type).join(Floor, Slot.floor_id == Floor.id)
            .where(Floor.lot_id == lot_id).distinct()
        ).all()
        return sorted(VehicleType(v).value for v in rows)


# ------------------------------------------------------------
# Catalogue de démo
# ------------------------------------------------------------
# Quatre parkings, deux étages de quarante slots. Le slot n est
# une borne EV si (n-1) % 3 == 0, une place vélo/moto si
# (n-1) % 2 == 0, sinon une place voiture. Sans bornes de
# recharge, les places EV deviennent des places voiture.
# ------------------------------------------------------------
DEMO_LOTS = [
    {"id": "1", "name": "Central Plaza Parking", "location": "Connaught Place, New Delhi",
     "price_per_hour": 50, "ev": True},
    {"id": "2", "name": "Metro Station Parking", "location": "Rajiv Chowk Metro, Delhi",
     "price_per_hour": 40, "ev": False},
    {"id": "3", "name": "Mall Parking Complex", "location": "Select Citywalk, Saket",
     "price_per_hour": 60, "ev": True},
    {"id": "4", "name": "Airport Parking Hub", "location": "IGI Airport, Terminal 3",
     "price_per_hour": 80, "ev": True},
]
FLOOR_CODES = ("F1", "F2")
SLOTS_PER_FLOOR = 40


def slot_type(number: int, has_ev: bool = True) -> VehicleType:
    i = number - 1
    if i % 3 == 0:
        return VehicleType.EV if has_ev else VehicleType.CAR
    if i % 2 == 0:
        return VehicleType.BIKE
    return VehicleType.CAR


# Insère un parking et ses étages ; floors = [(code, [(code_slot, type), ...])]
def add_lot(session: Session, lot: ParkingLot, floors):
    session.add(lot)
    for position, (code, slots) in enumerate(floors):
        floor = Floor(lot_id=lot.id, code=code, name=f"Floor {position + 1}", position=position)
        session.add(floor)
        session.flush()
        for number, (slot_code, vtype) in enumerate(slots, start=1):
            session.add(Slot(floor_id=floor.id, code=slot_code, number=number, vehicle_type=vtype))
    session.commit()
    return lot


def seed_catalog(session: Session) -> bool:
    if session.exec(select(ParkingLot)).first() is not None:
        return False
    for entry in DEMO_LOTS:
        lot = ParkingLot(id=entry["id"], name=entry["name"], location=entry["location"],
                         price_per_hour=entry["price_per_hour"])
        floors = [
            (code, [(f"{code}-{n}", slot_type(n, entry["ev"])) for n in range(1, SLOTS_PER_FLOOR + 1)])
            for code in FLOOR_CODES
        ]
        add_lot(session, lot, floors)
    log.info("seeded %d parking lots", len(DEMO_LOTS))
    return True
