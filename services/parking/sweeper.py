# ============================================================
# sweeper.py - Clôture des réservations terminées
# ------------------------------------------------------------
# Boucle de fond lancée par app.py dans un thread daemon.
# Toutes les SWEEP_INTERVAL_SECONDS, elle passe à "completed" les
# réservations actives dont la fenêtre est écoulée et publie un
# événement ReservationCompleted pour chacune.
# Les lectures projettent déjà ce statut : un passage en retard
# ou manqué ne change rien de visible pour un client.
# ============================================================
import logging, threading

from parking import config
from parking.errors import TransientError
from parking.ledger import ReservationLedger
from parking.publisher import publish_event, reservation_payload

log = logging.getLogger(__name__)


def sweep_once(ledger: ReservationLedger, publisher=publish_event, now=None):
    completed = ledger.complete_elapsed(now)
    for r in completed:
        if publisher is not None:
            publisher("ReservationCompleted", reservation_payload(r))
    if completed:
        log.info("completed %d elapsed reservations", len(completed))
    return completed


def start_sweeper(ledger: ReservationLedger, interval: int = config.SWEEP_INTERVAL_SECONDS,
                  stop: threading.Event = None, publisher=publish_event):
    if interval <= 0:
        log.info("completion sweep disabled")
        return
    stop = stop or threading.Event()
    log.info("completion sweep every %ss", interval)
    while not stop.is_set():
        try:
            sweep_once(ledger, publisher)
        except TransientError as e:
            log.warning("sweep failed: %s, retrying in %ss", e, interval)
        except Exception:
            # une itération en échec ne doit pas arrêter le thread
            log.exception("sweep failed, retrying in %ss", interval)
        stop.wait(interval)
