#!/usr/bin/env python3
"""
Application Layer Unit Tests

Tests for configuration, DTOs, messaging and the ParkingService API.
"""

import os
import sys
import tempfile
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from parkpool.application import parking_service as api
from parkpool.application.config import ParkingLotConfig, PricingConfig, PricingModel
from parkpool.application.dtos import VehicleDTO, ParkingTicketDTO, ParkingLotSnapshotDTO
from parkpool.application.parking_service import ParkingServiceFactory
from parkpool.domain.models import (
    EventType, Money, ParkingSpot, SpotSize, TicketIdGenerator, Vehicle, VehicleType,
    TicketNotFoundError, DomainEvent
)
from parkpool.domain.strategies import (
    SpotFindingStrategy, HourlyFeeStrategy, FlatRateFeeStrategy, PerMinuteFeeStrategy
)
from parkpool.infrastructure.messaging import EventBus, EventHandler


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestParkingLotConfig(unittest.TestCase):
    """Test config validation and loading"""

    CONFIG = {
        "name": "Airport Parking",
        "default_strategy": "first_fit",
        "pricing": {
            "model": "flat",
            "rates": {"small": "3.00", "medium": "6.00", "large": "12.00"},
        },
        "floors": [
            {"spots": [{"size": "small", "count": 2}, {"size": "medium", "count": 1}]},
            {"strategy": "best_fit", "spots": [{"size": "large", "count": 2, "prefix": "BUS-"}]},
        ],
    }

    def test_from_dict(self):
        config = ParkingLotConfig.from_dict(self.CONFIG)
        self.assertEqual(config.floor_count, 2)
        self.assertEqual(config.default_strategy, SpotFindingStrategy.FIRST_FIT)
        self.assertEqual(config.floors[1].strategy, SpotFindingStrategy.BEST_FIT)
        self.assertEqual(config.pricing.model, PricingModel.FLAT)
        self.assertIsInstance(config.pricing.build_strategy(), FlatRateFeeStrategy)

    def test_from_yaml(self):
        content = (
            "name: Downtown Parking\n"
            "pricing:\n"
            "  model: per_minute\n"
            "  base_fee: '1.00'\n"
            "  rates: {small: '0.10', medium: '0.20', large: '0.40'}\n"
            "floors:\n"
            "  - spots:\n"
            "      - {size: medium, count: 4}\n"
        )
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as handle:
            handle.write(content)
            path = handle.name
        try:
            config = ParkingLotConfig.from_yaml(path)
        finally:
            os.unlink(path)

        self.assertEqual(config.name, "Downtown Parking")
        self.assertEqual(config.default_strategy, SpotFindingStrategy.BEST_FIT)
        self.assertEqual(config.pricing.rates[SpotSize.MEDIUM], Decimal("0.20"))
        self.assertIsInstance(config.pricing.build_strategy(), PerMinuteFeeStrategy)

    def test_default_layout(self):
        config = ParkingLotConfig.default()
        self.assertEqual(config.floor_count, 3)
        self.assertEqual(sum(group.count for floor in config.floors for group in floor.spots), 45)
        self.assertIsInstance(config.pricing.build_strategy(), HourlyFeeStrategy)

    def test_validation_errors(self):
        invalid = [
            {"name": "", "floors": [{"spots": []}]},
            {"name": "Lot", "floors": []},
            {"name": "Lot", "floors": [{"spots": [{"size": "huge", "count": 1}]}]},
            {"name": "Lot", "floors": [{"spots": [{"size": "small", "count": 0}]}]},
            {"name": "Lot", "floors": [{"strategy": "worst_fit"}]},
            {
                "name": "Lot",
                "floors": [
                    {"spots": [{"size": "small", "count": 1, "prefix": "A"}]},
                    {"spots": [{"size": "large", "count": 1, "prefix": "A"}]},
                ],
            },
            {
                "name": "Lot",
                "floors": [{"spots": [
                    {"size": "small", "count": 11, "prefix": "A"},
                    {"size": "small", "count": 1, "prefix": "A1"},
                ]}],
            },
            {
                "name": "Lot",
                "floors": [{"spots": [
                    {"size": "small", "count": 1},
                    {"size": "medium", "count": 1, "prefix": "F1-S"},
                ]}],
            },
            {"name": "Lot", "pricing": {"model": "flat"}, "floors": [{"spots": []}]},
        ]
        for data in invalid:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError):
                    ParkingLotConfig.from_dict(data)

    def test_generated_spot_ids(self):
        config = ParkingLotConfig.from_dict({
            "name": "Lot",
            "floors": [
                {"spots": [
                    {"size": "small", "count": 2},
                    {"size": "large", "count": 1, "prefix": "BUS-"},
                    {"size": "small", "count": 1},
                ]},
                {"spots": [{"size": "small", "count": 1}]},
            ],
        })
        self.assertEqual(
            [spot_id for _, spot_id, _ in config.iter_spots()],
            ["F1-S1", "F1-S2", "BUS-1", "F1-S3", "F2-S1"]
        )

        service = ParkingServiceFactory.create_from_config(config)
        self.assertEqual(service.parking_lot.get_total_spots(), 5)
        service.parking_lot.validate_invariants()

    def test_pricing_needs_every_size(self):
        with self.assertRaises(ValidationError):
            PricingConfig(rates={"small": "1.00"})
        with self.assertRaises(ValidationError):
            PricingConfig(rates={"small": "-1", "medium": "1", "large": "1"})

    def test_only_hourly_pricing_has_default_rates(self):
        self.assertEqual(PricingConfig().rates[SpotSize.SMALL], Decimal("10.00"))
        for model in ("flat", "per_minute"):
            with self.subTest(model=model):
                with self.assertRaises(ValidationError):
                    PricingConfig(model=model)

        per_minute = PricingConfig(
            model="per_minute",
            base_fee="0",
            rates={"small": "0.10", "medium": "0.20", "large": "0.40"}
        )
        fee = per_minute.build_strategy().calculate_fee(SpotSize.SMALL, timedelta(minutes=10))
        self.assertEqual(fee, Money(Decimal("1.00")))


class TestDTOs(unittest.TestCase):
    """Test DTO conversion"""

    def test_vehicle_dto_to_domain(self):
        dto = VehicleDTO(license_plate="ka-05-5678", vehicle_type="car")
        self.assertEqual(dto.to_domain(), Vehicle.car("KA-05-5678"))

        with self.assertRaises(ValidationError):
            VehicleDTO(license_plate="KA-05-5678", vehicle_type="truck")

    def test_ticket_dto(self):
        service = ParkingServiceFactory.create_default_service(ticket_id_generator=TicketIdGenerator())
        ticket = service.park_vehicle(Vehicle.bus("MH-12-BUS1"))

        dto = ParkingTicketDTO.from_ticket(ticket)
        self.assertEqual(dto.ticket_id, "TKT-000001")
        self.assertEqual(dto.vehicle_type, "bus")
        self.assertEqual(dto.spot_id, "F1-L1")
        self.assertFalse(dto.is_paid)
        self.assertEqual(dto.to_dict()["fee"]["amount"], Decimal("0.00"))
        self.assertIn('"spot_id":"F1-L1"', dto.to_json())


class RecordingHandler(EventHandler):
    def __init__(self):
        self.events = []

    def handle(self, event: DomainEvent) -> None:
        self.events.append(event)


class FailingHandler(EventHandler):
    def handle(self, event: DomainEvent) -> None:
        raise RuntimeError("handler failure")


class TestParkingService(unittest.TestCase):
    """Test the service API over the default layout"""

    def setUp(self):
        self.clock = FakeClock()
        self.service = ParkingServiceFactory.create_default_service(
            clock=self.clock,
            ticket_id_generator=TicketIdGenerator()
        )

    def test_default_layout_spot_ids(self):
        floor_one = [spot.spot_id for spot in self.service.parking_lot.get_floor(1).spots]
        self.assertEqual(floor_one[:2], ["F1-S1", "F1-S2"])
        self.assertEqual(floor_one[-1], "F1-L3")
        self.assertEqual(self.service.parking_lot.get_total_spots(), 45)

    def test_initial_snapshot(self):
        snapshot = self.service.snapshot()
        self.assertIsInstance(snapshot, ParkingLotSnapshotDTO)
        self.assertEqual(snapshot.name, "Downtown Parking")
        self.assertEqual(snapshot.total_spots, 45)
        self.assertEqual(snapshot.active_tickets, 0)
        self.assertEqual(
            [floor.available_by_size for floor in snapshot.floors],
            [
                {"small": 5, "medium": 8, "large": 3},
                {"small": 3, "medium": 10, "large": 2},
                {"small": 4, "medium": 6, "large": 4},
            ]
        )
        self.assertEqual(snapshot.occupancy_rate, 0.0)

    def test_park_and_exit_dtos(self):
        allocation = self.service.park(VehicleDTO(license_plate="KA-05-5678", vehicle_type=VehicleType.CAR))
        self.assertTrue(allocation.success)
        self.assertEqual(allocation.ticket.spot_id, "F1-M1")

        self.clock.advance(minutes=90)
        result = self.service.exit(allocation.ticket.ticket_id)
        self.assertTrue(result.success)
        self.assertEqual(result.duration_minutes, 90)
        self.assertEqual(result.billable_hours, 2)
        self.assertEqual(result.fee.amount, Decimal("45.00"))

        repeat = self.service.exit(allocation.ticket.ticket_id)
        self.assertFalse(repeat.success)
        self.assertIn("Invalid ticket ID", repeat.message)

    def test_park_when_full(self):
        for index in range(9):
            self.assertIsNotNone(self.service.park_vehicle(Vehicle.bus(f"BUS-{index}")))
        allocation = self.service.park(VehicleDTO(license_plate="BUS-X", vehicle_type="bus"))
        self.assertFalse(allocation.success)
        self.assertIsNone(allocation.ticket)

    def test_events_and_revenue(self):
        ticket = self.service.park_vehicle(Vehicle.car("CAR-1"))
        self.clock.advance(hours=2)
        self.service.exit_vehicle(ticket.ticket_id)

        store = self.service.event_store
        self.assertEqual(len(store), 2)
        self.assertEqual(len(store.get_events(EventType.VEHICLE_PARKED)), 1)
        self.assertEqual(len(store.get_events(EventType.VEHICLE_LEFT)), 1)
        self.assertEqual(self.service.total_revenue, Money(Decimal("45.00")))
        self.assertEqual(self.service.revenue_tracker.completed_sessions, 1)
        self.assertFalse(self.service.parking_lot.has_changes)

    def test_failing_handler_does_not_break_parking(self):
        self.service.event_bus.subscribe(EventType.VEHICLE_PARKED, FailingHandler())
        with self.assertLogs("EventBus", level="ERROR"):
            ticket = self.service.park_vehicle(Vehicle.car("CAR-1"))
        self.assertIsNotNone(ticket)
        self.assertEqual(len(self.service.event_store), 1)

    def test_unknown_ticket_raises(self):
        with self.assertRaises(TicketNotFoundError):
            self.service.exit_vehicle("TKT-000404")

    def test_find_tickets(self):
        self.service.park_vehicle(Vehicle.car("DL-03-9999"))
        self.assertEqual(len(self.service.find_tickets("dl-03-9999")), 1)
        self.assertEqual(len(self.service.get_active_tickets()), 1)

    def test_custom_event_bus(self):
        bus = EventBus()
        recorder = RecordingHandler()
        bus.subscribe(EventType.VEHICLE_LEFT, recorder)
        service = ParkingServiceFactory.create_default_service(event_bus=bus)

        ticket = service.park_vehicle(Vehicle.motorcycle("MC-1"))
        service.exit_vehicle(ticket.ticket_id)
        self.assertEqual([event.ticket_id for event in recorder.events], [ticket.ticket_id])


class TestHandleApi(unittest.TestCase):
    """Test the module-level handle functions"""

    def test_lifecycle(self):
        clock = FakeClock()
        handle = api.initialize("Lot", 1, default_strategy="first_fit", clock=clock)
        api.add_parking_spot(handle, 1, ParkingSpot("M1", SpotSize.MEDIUM, 1))
        api.add_parking_spot(handle, 1, ParkingSpot("S1", SpotSize.SMALL, 1))

        ticket = api.park_vehicle(handle, Vehicle.motorcycle("MC-1"))
        self.assertEqual(ticket.spot.spot_id, "M1")
        self.assertEqual(api.snapshot(handle).active_tickets, 1)

        clock.advance(minutes=45)
        self.assertEqual(api.exit_vehicle(handle, ticket.ticket_id), Money(Decimal("15.00")))
        self.assertEqual(api.snapshot(handle).available_spots, 2)

    def test_handles_are_independent(self):
        first = api.initialize("North", 1)
        second = api.initialize("South", 1)
        api.add_parking_spot(first, 1, ParkingSpot("N-S1", SpotSize.SMALL, 1))
        api.add_parking_spot(second, 1, ParkingSpot("S-S1", SpotSize.SMALL, 1))

        api.park_vehicle(first, Vehicle.motorcycle("MC-1"))
        self.assertEqual(api.snapshot(first).available_spots, 0)
        self.assertEqual(api.snapshot(second).available_spots, 1)

    def test_custom_fee_strategy(self):
        handle = api.initialize(
            "Lot", 1,
            fee_strategy=FlatRateFeeStrategy({size: Decimal("7.00") for size in SpotSize})
        )
        api.add_parking_spot(handle, 1, ParkingSpot("L1", SpotSize.LARGE, 1))
        ticket = api.park_vehicle(handle, Vehicle.bus("BUS-1"))
        self.assertEqual(api.exit_vehicle(handle, ticket.ticket_id), Money(Decimal("7.00")))


if __name__ == "__main__":
    unittest.main()
