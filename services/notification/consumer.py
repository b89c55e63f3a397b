# ============================================================
# Notification Service - Consumer RabbitMQ
# ------------------------------------------------------------
# Écoute l'échange "events" et envoie un e-mail (simulé) pour
# chaque événement de réservation :
#   - ReservationCreated   -> reçu de réservation
#   - ReservationCancelled -> avis d'annulation
#   - ReservationCompleted -> message de remerciement
# Les messages redélivrés sont reconnus par messageId et ignorés.
# ============================================================
import json, logging, os, threading, time
from collections import deque

import pika

RABBIT = os.getenv("RABBITMQ_HOST", "rabbitmq")
OUTBOX_SIZE = int(os.getenv("OUTBOX_SIZE", "1000"))

log = logging.getLogger(__name__)

SUBJECTS = {
    "ReservationCreated": "Booking confirmed",
    "ReservationCancelled": "Booking cancelled",
    "ReservationCompleted": "Thanks for parking with us",
}


# ------------------------------------------------------------
# Ici on évite de traiter deux fois le même message
# ------------------------------------------------------------
# On garde en mémoire les messageId déjà traités (borné à `limit`,
# les plus anciens sont oubliés en premier).
# ------------------------------------------------------------
class ProcessedMessages:
    def __init__(self, limit: int = 10000):
        self.limit = limit
        self._seen = {}
        self._lock = threading.Lock()

    def mark(self, message_id: str) -> bool:
        # False si l'id a déjà été vu
        with self._lock:
            if message_id in self._seen:
                return False
            if len(self._seen) >= self.limit:
                self._seen.pop(next(iter(self._seen)))
            self._seen[message_id] = True
            return True


processed = ProcessedMessages()
# derniers e-mails envoyés, taille bornée
outbox = deque(maxlen=OUTBOX_SIZE)


def render_email(event_type: str, payload: dict) -> dict:
    lines = [
        f"Booking {payload.get('bookingCode')} (#{payload.get('reservationId')})",
        f"Lot {payload.get('lotId')}, floor {payload.get('floor')}, slot {payload.get('slotId')}",
        f"From {payload.get('start')} to {payload.get('end')}",
    ]
    if event_type == "ReservationCreated":
        lines.append(f"Amount paid: {payload.get('price')}")
    elif event_type == "ReservationCancelled":
        lines.append("Your slot has been released.")
    return {"to": payload.get("owner"), "subject": SUBJECTS[event_type], "body": "\n".join(lines)}


def send_email(email: dict):
    # pas de relais SMTP dans ce déploiement
    outbox.append(email)
    log.info("[notification] mock email to %s: %s", email["to"], email["subject"])


# Callback exécuté à chaque message reçu depuis RabbitMQ
def on_message(ch, method, properties, body):
    try:
        msg = json.loads(body)
    except ValueError as e:
        log.warning("[notification] bad payload: %s", e)
        return
    if not isinstance(msg, dict):
        log.warning("[notification] skipping non-object message")
        return
    etype = msg.get("type")
    if etype not in SUBJECTS:
        return
    payload = msg.get("payload")
    if not isinstance(payload, dict):
        log.warning("[notification] %s without payload, skipping", etype)
        return
    message_id = msg.get("messageId") or f"{etype}:{payload.get('reservationId', '?')}"
    if not processed.mark(message_id):
        log.info("[notification] %s already processed, skipping", message_id)
        return
    send_email(render_email(etype, payload))


#  Boucle de connexion + consommation RabbitMQ
def start_consumer():
    attempt = 0
    while True:
        try:
            log.info("[notification] connecting to rabbitmq at %s...", RABBIT)
            conn = pika.BlockingConnection(pika.ConnectionParameters(RABBIT, heartbeat=60))
            ch = conn.channel()
            ch.exchange_declare(exchange="events", exchange_type="fanout", durable=True)
            # queue anonyme, exclusive à ce consumer
            q = ch.queue_declare(queue="", exclusive=True).method.queue
            ch.queue_bind(exchange="events", queue=q)
            log.info("[notification] bound to 'events' queue=%s, waiting...", q)
            attempt = 0
            ch.basic_consume(queue=q, on_message_callback=on_message, auto_ack=True)
            ch.start_consuming()
        except Exception:
            # broker ou message imprévu : on se reconnecte
            attempt += 1
            wait = min(5 * attempt, 30)
            log.exception("[notification] consumer error, retrying in %ss", wait)
            time.sleep(wait)
