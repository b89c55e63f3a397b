# ============================================================
# ledger.py - Registre des réservations
# ------------------------------------------------------------
# Seul module qui écrit dans la table Reservation.
#
# commit() fait la vérification de chevauchement et l'insertion
# comme une seule unité :
#   - un verrou en mémoire par slot sérialise les commits sur le
#     même slot, les autres slots réservent en parallèle
#   - dans la transaction, la ligne du slot est verrouillée par
#     SELECT ... FOR UPDATE, ce qui sérialise plusieurs processus
#     sur PostgreSQL (SQLite l'ignore et s'appuie sur son verrou
#     d'écriture global)
# Les changements de statut sont des UPDATE conditionnels : une
# annulation et le sweeper n'écrasent jamais le résultat l'un de
# l'autre.
# ============================================================
import logging, threading, uuid
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlmodel import select

from parking.availability import AvailabilityIndex
from parking.db import open_session
from parking.errors import (AlreadyCancelled, Forbidden, ReservationConflict,
                            ReservationNotFound, TransientError)
from parking.models import Floor, Reservation, ReservationStatus, Slot, TimeWindow, utcnow
from parking.repository import ReservationRepository

log = logging.getLogger(__name__)


# Exclusion mutuelle par slot id, verrous créés à la première utilisation
class SlotLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, slot_id: int):
        with self._guard:
            lock = self._locks.setdefault(slot_id, threading.Lock())
        with lock:
            yield


# Les pannes de connexion à la base remontent en TransientError
@contextmanager
def storage_errors():
    try:
        yield
    except (OperationalError, DisconnectionError) as e:
        raise TransientError(f"storage unavailable: {e}") from e


def new_code() -> str:
    return "BK" + uuid.uuid4().hex[:8].upper()


class ReservationLedger:
    def __init__(self, engine: Engine, locks: SlotLocks = None):
        self.engine = engine
        self.locks = locks or SlotLocks()

    def commit(self, slot: Slot, floor: Floor, window: TimeWindow, owner: str,
               price: int, duration_hours: int) -> Reservation:
        with storage_errors(), self.locks.hold(slot.id), open_session(self.engine) as s:
            # verrou de ligne sur le slot jusqu'à la fin de la transaction
            s.exec(select(Slot).where(Slot.id == slot.id).with_for_update()).one()
            if not AvailabilityIndex(s).is_available(slot.id, window):
                log.info("conflict on slot %s for %s..%s", slot.id, window.start, window.end)
                raise ReservationConflict()
            created = ReservationRepository(s).create(Reservation(
                code=new_code(),
                slot_id=slot.id,
                lot_id=floor.lot_id,
                floor_code=floor.code,
                slot_code=slot.code,
                vehicle_type=slot.vehicle_type,
                owner=owner,
                start=window.start,
                end=window.end,
                duration_hours=duration_hours,
                price=price,
            ))
        log.info("reservation %s (%s) committed on slot %s", created.id, created.code, slot.id)
        return created

    # Après une erreur transitoire, le commit a pu passer quand même :
    # on retrouve alors la réservation de l'appelant.
    def find_committed(self, slot: Slot, window: TimeWindow, owner: str):
        with storage_errors(), open_session(self.engine) as s:
            return ReservationRepository(s).find_exact(slot.id, window, owner)

    def get(self, reservation_id: int) -> Reservation:
        with storage_errors(), open_session(self.engine) as s:
            r = ReservationRepository(s).get(reservation_id)
        if not r:
            raise ReservationNotFound(f"reservation {reservation_id} not found")
        return r

    def list_for_owner(self, owner: str):
        with storage_errors(), open_session(self.engine) as s:
            return ReservationRepository(s).list_for_owner(owner)

    def cancel(self, reservation_id: int, requester: str, now: datetime = None) -> Reservation:
        now = now or utcnow()
        with storage_errors(), open_session(self.engine) as s:
            repo = ReservationRepository(s)
            r = repo.get(reservation_id)
            if not r:
                raise ReservationNotFound(f"reservation {reservation_id} not found")
            if r.owner != requester:
                log.warning("cancel of reservation %s refused for %s", reservation_id, requester)
                raise Forbidden()
            result = s.execute(
                update(Reservation)
                .where(Reservation.id == reservation_id,
                       Reservation.status != ReservationStatus.CANCELLED)
                .values(status=ReservationStatus.CANCELLED, cancelled_at=now)
            )
            s.commit()
            if result.rowcount == 0:
                raise AlreadyCancelled()
            s.refresh(r)
        log.info("reservation %s cancelled", reservation_id)
        return r

    # Passe en "completed" toutes les réservations actives terminées
    def complete_elapsed(self, now: datetime = None):
        now = now or utcnow()
        completed = []
        with storage_errors(), open_session(self.engine) as s:
            for r in ReservationRepository(s).elapsed_active(now):
                result = s.execute(
                    update(Reservation)
                    .where(Reservation.id == r.id, Reservation.status == ReservationStatus.ACTIVE)
                    .values(status=ReservationStatus.COMPLETED)
                )
                if result.rowcount:
                    completed.append(r)
            s.commit()
            for r in completed:
                s.refresh(r)
        return completed
