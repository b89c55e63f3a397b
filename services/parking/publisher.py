# ============================================================
# publisher.py - Émission d'événements RabbitMQ
# ------------------------------------------------------------
# Les changements d'état des réservations (ReservationCreated,
# ReservationCancelled, ReservationCompleted) sont diffusés sur
# l'échange fanout "events". La publication a lieu après le
# commit en base ; une panne du broker est journalisée et
# n'annule jamais la réservation.
# ============================================================
import json, logging, uuid

import pika
from pika.exceptions import AMQPError

from parking import config

log = logging.getLogger(__name__)

EXCHANGE = "events"


def build_message(event_type: str, payload: dict) -> dict:
    return {"type": event_type, "messageId": str(uuid.uuid4()), "payload": payload}


# Publie un message sur l'échange fanout : tous les consommateurs
# liés (service notification, ...) en reçoivent une copie.
def publish_event(event_type: str, payload: dict) -> bool:
    if not config.EVENTS_ENABLED:
        return False
    message = build_message(event_type, payload)
    try:
        conn = pika.BlockingConnection(pika.ConnectionParameters(host=config.RABBITMQ_HOST))
        try:
            ch = conn.channel()
            # durable=True pour survivre aux redémarrages RabbitMQ
            ch.exchange_declare(exchange=EXCHANGE, exchange_type="fanout", durable=True)
            ch.basic_publish(exchange=EXCHANGE, routing_key="", body=json.dumps(message))
        finally:
            conn.close()
    except AMQPError as e:
        log.warning("could not publish %s: %s", event_type, e)
        return False
    log.info("[event] %s %s", event_type, payload)
    return True


def reservation_payload(r) -> dict:
    return {
        "reservationId": r.id,
        "bookingCode": r.code,
        "owner": r.owner,
        "lotId": r.lot_id,
        "floor": r.floor_code,
        "slotId": r.slot_code,
        "start": r.start.isoformat() + "+00:00",
        "end": r.end.isoformat() + "+00:00",
        "price": r.price,
    }
