import json
import unittest
from collections import deque
from unittest.mock import patch

from notification import consumer
from notification.consumer import ProcessedMessages, on_message, render_email

PAYLOAD = {"reservationId": 3, "bookingCode": "BKAAAA0001", "owner": "u1", "lotId": "L1",
           "floor": "F1", "slotId": "A1", "start": "2024-01-01T10:00:00+00:00",
           "end": "2024-01-01T12:00:00+00:00", "price": 100}


def body(event_type, message_id="m-1", payload=PAYLOAD):
    return json.dumps({"type": event_type, "messageId": message_id, "payload": payload}).encode()


class TestNotificationConsumer(unittest.TestCase):
    def setUp(self):
        patcher = patch.object(consumer, "processed", ProcessedMessages())
        patcher.start()
        self.addCleanup(patcher.stop)
        outbox = patch.object(consumer, "outbox", deque(maxlen=5))
        outbox.start()
        self.addCleanup(outbox.stop)

    def test_receipt_for_created_reservation(self):
        on_message(None, None, None, body("ReservationCreated"))
        self.assertEqual(len(consumer.outbox), 1)
        email = consumer.outbox[0]
        self.assertEqual(email["to"], "u1")
        self.assertEqual(email["subject"], "Booking confirmed")
        self.assertIn("BKAAAA0001", email["body"])
        self.assertIn("Amount paid: 100", email["body"])

    def test_redelivery_is_skipped(self):
        on_message(None, None, None, body("ReservationCancelled", "m-2"))
        on_message(None, None, None, body("ReservationCancelled", "m-2"))
        self.assertEqual(len(consumer.outbox), 1)

    def test_unrelated_and_malformed_messages_are_ignored(self):
        on_message(None, None, None, body("SomethingElse"))
        on_message(None, None, None, b"not json")
        self.assertEqual(len(consumer.outbox), 0)

    def test_null_payload_and_non_object_messages_are_skipped(self):
        on_message(None, None, None, b'{"type": "ReservationCreated", "payload": null}')
        on_message(None, None, None, b'["ReservationCreated"]')
        on_message(None, None, None, b'"ReservationCreated"')
        self.assertEqual(len(consumer.outbox), 0)
        # a valid message afterwards is still handled
        on_message(None, None, None, body("ReservationCreated", "m-9"))
        self.assertEqual(len(consumer.outbox), 1)

    def test_outbox_keeps_only_latest_emails(self):
        for i in range(20):
            on_message(None, None, None, body("ReservationCreated", f"m-{i}"))
        self.assertEqual(len(consumer.outbox), 5)
        self.assertEqual(consumer.outbox.maxlen, 5)


class TestConsumerLoop(unittest.TestCase):
    @patch("notification.consumer.time.sleep")
    @patch("notification.consumer.pika.BlockingConnection")
    def test_loop_reconnects_after_unexpected_error(self, connection, sleep):
        ch = connection.return_value.channel.return_value
        ch.start_consuming.side_effect = [AttributeError("boom"), KeyboardInterrupt()]
        with self.assertRaises(KeyboardInterrupt):
            consumer.start_consumer()
        self.assertEqual(ch.start_consuming.call_count, 2)
        sleep.assert_called_once_with(5)

    def test_render_cancellation(self):
        email = render_email("ReservationCancelled", PAYLOAD)
        self.assertEqual(email["subject"], "Booking cancelled")
        self.assertIn("released", email["body"])


class TestProcessedMessages(unittest.TestCase):
    def test_bounded_memory(self):
        seen = ProcessedMessages(limit=2)
        self.assertTrue(seen.mark("a"))
        self.assertTrue(seen.mark("b"))
        self.assertFalse(seen.mark("b"))
        self.assertTrue(seen.mark("c"))
        # "a" was evicted
        self.assertTrue(seen.mark("a"))


if __name__ == "__main__":
    unittest.main()
