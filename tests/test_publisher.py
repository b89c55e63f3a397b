import json
import unittest
from datetime import datetime
from unittest.mock import patch

from pika.exceptions import AMQPConnectionError

from parking import publisher
from parking.models import Reservation, VehicleType


class TestPublishEvent(unittest.TestCase):
    @patch("parking.publisher.config.EVENTS_ENABLED", True)
    @patch("parking.publisher.pika.BlockingConnection")
    def test_publishes_on_fanout_exchange(self, connection):
        self.assertTrue(publisher.publish_event("ReservationCreated", {"reservationId": 1}))
        ch = connection.return_value.channel.return_value
        ch.exchange_declare.assert_called_once_with(exchange="events", exchange_type="fanout", durable=True)
        body = json.loads(ch.basic_publish.call_args.kwargs["body"])
        self.assertEqual(body["type"], "ReservationCreated")
        self.assertEqual(body["payload"], {"reservationId": 1})
        self.assertTrue(body["messageId"])
        connection.return_value.close.assert_called_once()

    @patch("parking.publisher.config.EVENTS_ENABLED", True)
    @patch("parking.publisher.pika.BlockingConnection", side_effect=AMQPConnectionError("down"))
    def test_broker_outage_is_not_raised(self, connection):
        self.assertFalse(publisher.publish_event("ReservationCreated", {}))

    @patch("parking.publisher.config.EVENTS_ENABLED", False)
    @patch("parking.publisher.pika.BlockingConnection")
    def test_disabled(self, connection):
        self.assertFalse(publisher.publish_event("ReservationCreated", {}))
        connection.assert_not_called()

    def test_message_ids_are_unique(self):
        a = publisher.build_message("X", {})
        b = publisher.build_message("X", {})
        self.assertNotEqual(a["messageId"], b["messageId"])

    def test_reservation_payload(self):
        r = Reservation(id=7, code="BK12345678", slot_id=1, lot_id="L1", floor_code="F1", slot_code="A1",
                        vehicle_type=VehicleType.CAR, owner="u1", start=datetime(2024, 1, 1, 10),
                        end=datetime(2024, 1, 1, 12), duration_hours=2, price=100)
        payload = publisher.reservation_payload(r)
        self.assertEqual(payload["start"], "2024-01-01T10:00:00+00:00")
        self.assertEqual(payload["bookingCode"], "BK12345678")
        self.assertEqual(payload["owner"], "u1")


if __name__ == "__main__":
    unittest.main()
