# ============================================================
# errors.py - Échecs par requête
# ------------------------------------------------------------
# Aucun n'est fatal pour le service ; app.py associe chacun à un
# statut HTTP. ReservationConflict est l'issue normale d'un slot
# déjà pris, pas une panne.
# ============================================================


class ParkingError(Exception):
    status_code = 500
    detail = "internal error"

    def __init__(self, message: str = None):
        super().__init__(message or self.detail)
        self.message = message or self.detail


class NotFound(ParkingError):
    status_code = 404
    detail = "not found"


class LotNotFound(NotFound):
    detail = "parking lot not found"


class FloorNotFound(NotFound):
    detail = "floor not found"


class SlotNotFound(NotFound):
    detail = "slot not found"


class ReservationNotFound(NotFound):
    detail = "reservation not found"


class ReservationConflict(ParkingError):
    status_code = 409
    detail = "slot already booked for this time, please pick another slot or time"


class AlreadyCancelled(ParkingError):
    status_code = 409
    detail = "reservation already cancelled"


class Forbidden(ParkingError):
    # même message quelle que soit la raison : le propriétaire reste privé
    status_code = 403
    detail = "not allowed"


class InvalidDuration(ParkingError):
    status_code = 400
    detail = "unsupported duration"


class InvalidWindow(ParkingError):
    status_code = 400
    detail = "invalid time window"


class TransientError(ParkingError):
    status_code = 503
    detail = "temporary storage failure, please try again"
