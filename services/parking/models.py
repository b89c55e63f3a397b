# ============================================================
# models.py - Modèles de données SQLModel (Parking Service)
# ------------------------------------------------------------
# Tables :
#   1. ParkingLot / Floor / Slot : le catalogue, en lecture seule
#      une fois initialisé
#   2. Reservation : la réservation d'un slot sur une fenêtre
# Plus l'objet valeur TimeWindow et les corps de requête de l'API.
# ============================================================
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from parking.config import LOCAL_TZ
from parking.errors import InvalidWindow


class VehicleType(str, Enum):
    CAR = "car"
    BIKE = "bike"
    EV = "ev"


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Normalise en UTC naïf (forme stockée) ; un datetime naïf est en heure locale
def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(dt: datetime) -> str:
    # les datetimes stockés sont en UTC naïf
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(LOCAL_TZ).isoformat()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class TimeWindow:
    # intervalle semi-ouvert [start, end) en UTC naïf
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidWindow("end must be after start")

    @classmethod
    def of(cls, start: datetime, hours: int) -> "TimeWindow":
        start = to_utc(start)
        return cls(start, start + timedelta(hours=hours))

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


# ------------------------------------------------------------
# Catalogue
# ------------------------------------------------------------
class ParkingLot(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str
    location: str
    price_per_hour: int = Field(ge=0)


class Floor(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("lot_id", "code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    lot_id: str = Field(foreign_key="parkinglot.id", index=True)
    code: str
    name: str
    position: int = 0


class Slot(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("floor_id", "code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    floor_id: int = Field(foreign_key="floor.id", index=True)
    code: str
    number: int
    vehicle_type: VehicleType = VehicleType.CAR


# ------------------------------------------------------------
# Reservation
# ------------------------------------------------------------
# Cycle de vie : active -> cancelled | active -> completed, les
# deux terminaux. Les lignes ne sont jamais supprimées : elles
# forment l'historique. Les libellés parking/étage/slot sont
# copiés au commit pour lire l'historique sans jointure.
# ------------------------------------------------------------
class Reservation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    slot_id: int = Field(foreign_key="slot.id", index=True)
    lot_id: str
    floor_code: str
    slot_code: str
    vehicle_type: VehicleType
    owner: str = Field(index=True)
    start: datetime
    end: datetime
    duration_hours: int
    price: int
    status: ReservationStatus = ReservationStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    cancelled_at: Optional[datetime] = None

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start, self.end)

    def effective_status(self, now: datetime) -> ReservationStatus:
        # une réservation active écoulée se lit "completed", sans écriture
        if self.status == ReservationStatus.ACTIVE and now >= self.end:
            return ReservationStatus.COMPLETED
        return self.status


# ------------------------------------------------------------
# Corps de requête
# ------------------------------------------------------------
class ReservationCreate(SQLModel):
    lot_id: str
    floor_id: str
    slot_id: str
    start: datetime
    duration_hours: int
