"""Shared fixtures for the parking service tests."""
import os
import shutil
import tempfile
import unittest
from datetime import datetime

from parking.db import create_tables, make_engine, open_session
from parking.ledger import ReservationLedger
from parking.models import ParkingLot, VehicleType
from parking.registry import add_lot
from parking.service import ReservationService


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self):
        return self.now


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def __call__(self, event_type, payload):
        self.events.append((event_type, payload))

    def types(self):
        return [t for t, _ in self.events]


# Lot "L1" at 50/hour: floor F1 with A1 (car), A2 (car), B1 (bike), E1 (ev)
L1_FLOORS = [
    ("F1", [("A1", VehicleType.CAR), ("A2", VehicleType.CAR),
            ("B1", VehicleType.BIKE), ("E1", VehicleType.EV)]),
    ("F2", [("C1", VehicleType.CAR)]),
]


class DatabaseTestCase(unittest.TestCase):
    """Temporary SQLite database with the L1 (50/h) and L2 (40/h) lots."""

    now = datetime(2023, 12, 31, 0, 0)

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.engine = make_engine(f"sqlite:///{os.path.join(self.tmpdir, 'test.db')}")
        create_tables(self.engine)
        with open_session(self.engine) as s:
            self.populate(s)
        self.clock = FixedClock(self.now)
        self.events = RecordingPublisher()
        self.ledger = ReservationLedger(self.engine)
        self.service = ReservationService(self.engine, self.ledger, clock=self.clock,
                                          publisher=self.events, retry_base_delay=0,
                                          sleep=lambda _: None)

    def populate(self, s):
        add_lot(s, ParkingLot(id="L1", name="Central Plaza Parking",
                              location="Connaught Place, New Delhi", price_per_hour=50), L1_FLOORS)
        add_lot(s, ParkingLot(id="L2", name="Metro Station Parking",
                              location="Rajiv Chowk Metro, Delhi", price_per_hour=40),
                [("F1", [("S1", VehicleType.CAR), ("S2", VehicleType.BIKE)])])

    def tearDown(self):
        self.engine.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def session(self):
        return open_session(self.engine)
