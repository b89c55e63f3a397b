# ============================================================
# availability.py - Index de disponibilité
# ------------------------------------------------------------
# Répond à "le slot S est-il libre sur [start, end) ?" à partir
# des lignes commitées au moment de l'appel. Aucun cache : une
# réservation est visible ici dès que son commit a rendu la main.
# ============================================================
from sqlmodel import Session

from parking.models import ParkingLot, TimeWindow, VehicleType
from parking.registry import SlotRegistry
from parking.repository import ReservationRepository


class AvailabilityIndex:
    def __init__(self, session: Session):
        self.session = session
        self.registry = SlotRegistry(session)
        self.reservations = ReservationRepository(session)

    def _busy(self, slot_ids, window: TimeWindow):
        if not slot_ids:
            return set()
        return {r.slot_id for r in self.reservations.overlapping(slot_ids, window)}

    def is_available(self, slot_id: int, window: TimeWindow) -> bool:
        return not self._busy([slot_id], window)

    def list_available(self, lot_id: str, floor_id: str, window: TimeWindow,
                       vehicle_type: VehicleType = None):
        return {slot.code for slot, free in self.slot_grid(lot_id, floor_id, window, vehicle_type) if free}

    def slot_grid(self, lot_id: str, floor_id: str, window: TimeWindow,
                  vehicle_type: VehicleType = None):
        # [(slot, libre)] dans l'ordre des numéros de slot
        slots = self.registry.list_slots(lot_id, floor_id)
        if vehicle_type is not None:
            slots = [s for s in slots if s.vehicle_type == vehicle_type]
        busy = self._busy([s.id for s in slots], window)
        return [(s, s.id not in busy) for s in slots]

    def lot_summary(self, lot: ParkingLot, window: TimeWindow):
        # (libres, total) sur tous les étages du parking
        slot_ids = []
        for floor in self.registry.list_floors(lot.id):
            slot_ids.extend(s.id for s in self.registry.list_slots(lot.id, floor.code))
        busy = self._busy(slot_ids, window)
        return len(slot_ids) - len(busy), len(slot_ids)

