import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from parking.errors import TransientError
from parking.models import ReservationStatus
from parking.sweeper import start_sweeper, sweep_once

from tests.support import DatabaseTestCase, RecordingPublisher


class TestSweepOnce(DatabaseTestCase):
    def test_sweep_completes_and_announces(self):
        r = self.service.reserve("L1", "F1", "A1", "u1", datetime(2024, 1, 1, 10, tzinfo=timezone.utc), 1)
        events = RecordingPublisher()
        done = sweep_once(self.ledger, events, now=datetime(2024, 1, 1, 12))
        self.assertEqual([x.id for x in done], [r.id])
        self.assertEqual(events.types(), ["ReservationCompleted"])
        self.assertEqual(events.events[0][1]["reservationId"], r.id)
        self.assertEqual(self.ledger.get(r.id).status, ReservationStatus.COMPLETED)

    def test_sweep_before_end_does_nothing(self):
        self.service.reserve("L1", "F1", "A1", "u1", datetime(2024, 1, 1, 10, tzinfo=timezone.utc), 1)
        self.assertEqual(sweep_once(self.ledger, None, now=datetime(2024, 1, 1, 10, 30)), [])


class TestStartSweeper(unittest.TestCase):
    def test_disabled_with_zero_interval(self):
        ledger = Mock()
        start_sweeper(ledger, interval=0)
        ledger.complete_elapsed.assert_not_called()

    def test_loop_survives_transient_failures(self):
        stop = threading.Event()
        ledger = Mock()
        calls = []

        def complete(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise TransientError()
            stop.set()
            return []
        ledger.complete_elapsed.side_effect = complete
        start_sweeper(ledger, interval=0.01, stop=stop, publisher=None)
        self.assertEqual(len(calls), 2)

    def test_loop_survives_unexpected_errors(self):
        stop = threading.Event()
        ledger = Mock()
        calls = []

        def complete(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("corrupt row")
            stop.set()
            return []
        ledger.complete_elapsed.side_effect = complete
        with self.assertLogs("parking.sweeper", level="ERROR"):
            start_sweeper(ledger, interval=0.01, stop=stop, publisher=None)
        self.assertEqual(len(calls), 2)


if __name__ == "__main__":
    unittest.main()
