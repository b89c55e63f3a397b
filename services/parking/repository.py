# ============================================================
# repository.py - Accès aux données Reservation
# ------------------------------------------------------------
# Design pattern "Repository" pour la table Reservation. Utilisé
# par le ledger (écritures), l'index de disponibilité (lectures
# de chevauchement) et le sweeper.
# ============================================================
from datetime import datetime

from sqlmodel import Session, select

from parking.models import Reservation, ReservationStatus, TimeWindow

# statuts qui gardent le slot occupé sur leur fenêtre
BLOCKING = (ReservationStatus.ACTIVE, ReservationStatus.COMPLETED)


class ReservationRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, r: Reservation):
        self.session.add(r)
        self.session.commit()
        self.session.refresh(r)
        return r

    def get(self, reservation_id: int):
        return self.session.exec(select(Reservation).where(Reservation.id == reservation_id)).first()

    def list_for_owner(self, owner: str):
        return self.session.exec(
            select(Reservation).where(Reservation.owner == owner)
            .order_by(Reservation.start.desc(), Reservation.id.desc())
        ).all()

    # réservations bloquantes sur slot_ids qui croisent la fenêtre
    def overlapping(self, slot_ids, window: TimeWindow):
        return self.session.exec(
            select(Reservation).where(
                Reservation.slot_id.in_(list(slot_ids)),
                Reservation.status.in_(BLOCKING),
                Reservation.start < window.end,
                Reservation.end > window.start,
            )
        ).all()

    # la réservation active de owner sur exactement ce slot et cette fenêtre
    def find_exact(self, slot_id: int, window: TimeWindow, owner: str):
        return self.session.exec(
            select(Reservation).where(
                Reservation.slot_id == slot_id,
                Reservation.owner == owner,
                Reservation.status == ReservationStatus.ACTIVE,
                Reservation.start == window.start,
                Reservation.end == window.end,
            )
        ).first()

    def elapsed_active(self, now: datetime):
        return self.session.exec(
            select(Reservation).where(Reservation.status == ReservationStatus.ACTIVE,
                                      Reservation.end <= now)
        ).all()
