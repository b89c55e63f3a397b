# ============================================================
# service.py - Service de réservation
# ------------------------------------------------------------
# Orchestre la recherche dans le catalogue, le calcul du prix,
# le commit vérifié dans le ledger, l'annulation et l'historique.
# La couche HTTP (api.py) ne parle qu'à cette classe.
#
# Les pannes transitoires de stockage sont réessayées ici avec un
# backoff exponentiel ; une fois les tentatives épuisées, la
# TransientError remonte à l'appelant.
# ============================================================
import logging, time
from datetime import datetime, timedelta

from sqlalchemy.engine import Engine

from parking import config
from parking.availability import AvailabilityIndex
from parking.db import open_session
from parking.errors import Forbidden, InvalidDuration, TransientError
from parking.ledger import ReservationLedger, storage_errors
from parking.models import Reservation, ReservationStatus, TimeWindow, VehicleType, to_local, utcnow
from parking.publisher import publish_event, reservation_payload
from parking.registry import SlotRegistry

log = logging.getLogger(__name__)

DURATION_OPTIONS = (1, 2, 3, 4, 5, 6, 8, 10, 12, 24)


def check_duration(duration_hours: int) -> int:
    if duration_hours not in DURATION_OPTIONS:
        raise InvalidDuration(f"duration must be one of {', '.join(map(str, DURATION_OPTIONS))} hours")
    return duration_hours


class ReservationService:
    def __init__(self, engine: Engine, ledger: ReservationLedger = None, clock=None,
                 publisher=publish_event, retry_attempts: int = config.RETRY_ATTEMPTS,
                 retry_base_delay: float = config.RETRY_BASE_DELAY, sleep=time.sleep):
        self.engine = engine
        self.ledger = ledger or ReservationLedger(engine)
        # renvoie un datetime UTC naïf
        self.clock = clock or utcnow
        self.publisher = publisher
        self.retry_attempts = max(1, retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    # --------------------------------------------------------
    # Plomberie
    # --------------------------------------------------------
    def _with_retry(self, fn, *args, **kwargs):
        attempt = 0
        while True:
            try:
                return fn(*args, **kwargs)
            except TransientError as e:
                attempt += 1
                if attempt >= self.retry_attempts:
                    log.error("giving up after %d attempts: %s", attempt, e)
                    raise
                wait = self.retry_base_delay * (2 ** (attempt - 1))
                log.warning("transient failure (attempt %d), retrying in %.2fs: %s", attempt, wait, e)
                self.sleep(wait)

    # fn(session) dans une session neuve, avec réessais
    def _read(self, fn):
        def run():
            with storage_errors(), open_session(self.engine) as s:
                return fn(s)
        return self._with_retry(run)

    def _publish(self, event_type: str, reservation: Reservation):
        if self.publisher is not None:
            self.publisher(event_type, reservation_payload(reservation))

    # fenêtre de duration_hours à partir de start (heure locale si naïf), sinon maintenant
    def window(self, start: datetime = None, duration_hours: int = 1) -> TimeWindow:
        check_duration(duration_hours)
        if start is None:
            now = self.clock()
            return TimeWindow(now, now + timedelta(hours=duration_hours))
        return TimeWindow.of(start, duration_hours)

    # --------------------------------------------------------
    # Catalogue et disponibilité
    # --------------------------------------------------------
    def list_lots(self, query: str = None):
        return self._read(lambda s: SlotRegistry(s).list_lots(query))

    # parkings avec leurs slots libres/total sur la fenêtre
    def lot_summaries(self, window: TimeWindow, query: str = None):
        def run(s):
            registry, index = SlotRegistry(s), AvailabilityIndex(s)
            rows = []
            for lot in registry.list_lots(query):
                available, total = index.lot_summary(lot, window)
                rows.append({"lot": lot, "available": available, "total": total,
                             "vehicle_types": registry.vehicle_types(lot.id)})
            return rows
        return self._read(run)

    def get_lot(self, lot_id: str):
        return self._read(lambda s: SlotRegistry(s).get_lot(lot_id))

    def list_floors(self, lot_id: str):
        return self._read(lambda s: SlotRegistry(s).list_floors(lot_id))

    def get_floor(self, lot_id: str, floor_id: str):
        return self._read(lambda s: SlotRegistry(s).get_floor(lot_id, floor_id))

    def get_slot(self, lot_id: str, floor_id: str, slot_id: str):
        return self._read(lambda s: SlotRegistry(s).get_slot(lot_id, floor_id, slot_id))

    def slot_grid(self, lot_id: str, floor_id: str, window: TimeWindow, vehicle_type: VehicleType = None):
        return self._read(lambda s: AvailabilityIndex(s).slot_grid(lot_id, floor_id, window, vehicle_type))

    def list_available(self, lot_id: str, floor_id: str, window: TimeWindow,
                       vehicle_type: VehicleType = None):
        return self._read(lambda s: AvailabilityIndex(s).list_available(lot_id, floor_id, window, vehicle_type))

    def is_available(self, lot_id: str, floor_id: str, slot_id: str, window: TimeWindow) -> bool:
        def run(s):
            slot = SlotRegistry(s).get_slot(lot_id, floor_id, slot_id)
            return AvailabilityIndex(s).is_available(slot.id, window)
        return self._read(run)

    def quote(self, lot_id: str, floor_id: str, slot_id: str, duration_hours: int) -> int:
        check_duration(duration_hours)

        def run(s):
            registry = SlotRegistry(s)
            registry.get_slot(lot_id, floor_id, slot_id)
            return registry.get_lot(lot_id).price_per_hour * duration_hours
        return self._read(run)

    # --------------------------------------------------------
    # Réservation
    # --------------------------------------------------------
    def reserve(self, lot_id: str, floor_id: str, slot_id: str, owner: str,
                start: datetime, duration_hours: int) -> Reservation:
        window = self.window(start, duration_hours)

        def lookup(s):
            registry = SlotRegistry(s)
            slot = registry.get_slot(lot_id, floor_id, slot_id)
            floor = registry.get_floor(lot_id, floor_id)
            return slot, floor, registry.get_lot(lot_id).price_per_hour * duration_hours
        slot, floor, price = self._read(lookup)

        attempts = []

        # après une erreur transitoire le commit précédent a pu aboutir :
        # on renvoie alors cette réservation au lieu d'un conflit avec soi-même
        def commit():
            if attempts:
                existing = self.ledger.find_committed(slot, window, owner)
                if existing is not None:
                    log.info("reservation %s already committed by an earlier attempt", existing.id)
                    return existing
            attempts.append(True)
            return self.ledger.commit(slot, floor, window, owner, price, duration_hours)

        created = self._with_retry(commit)
        self._publish("ReservationCreated", created)
        return created

    def cancel(self, reservation_id: int, owner: str) -> Reservation:
        cancelled = self._with_retry(self.ledger.cancel, reservation_id, owner, self.clock())
        self._publish("ReservationCancelled", cancelled)
        return cancelled

    def get_reservation(self, reservation_id: int, owner: str) -> Reservation:
        r = self._with_retry(self.ledger.get, reservation_id)
        if r.owner != owner:
            raise Forbidden()
        return r

    # toutes les réservations de owner, début le plus récent en premier
    def list_reservations(self, owner: str):
        return self._with_retry(self.ledger.list_for_owner, owner)

    def status_of(self, r: Reservation) -> ReservationStatus:
        return r.effective_status(self.clock())

    # (à venir, passées) : à venir = actives et pas encore commencées
    def booking_history(self, owner: str):
        now = self.clock()
        upcoming, past = [], []
        for r in self.list_reservations(owner):
            if r.status == ReservationStatus.ACTIVE and r.start > now:
                upcoming.append(r)
            else:
                past.append(r)
        return upcoming, past

    def ticket(self, reservation_id: int, owner: str) -> dict:
        r = self.get_reservation(reservation_id, owner)
        lot = self.get_lot(r.lot_id)
        return {
            "bookingId": r.id,
            "bookingCode": r.code,
            "parkingLot": lot.name,
            "location": lot.location,
            "floor": r.floor_code,
            "slotId": r.slot_code,
            "vehicleType": VehicleType(r.vehicle_type).value,
            "startTime": to_local(r.start),
            "endTime": to_local(r.end),
            "durationHours": r.duration_hours,
            "totalCost": r.price,
            "status": self.status_of(r).value,
        }
