# File: src/parkpool/application/parking_service.py
"""
Parking Allocation Application Service

This module is the programmatic API of the engine. A ParkingService is
the handle callers thread through every operation; it wraps one
ParkingLot aggregate, publishes the lot's domain events once the lot
lock has been released, and converts results to DTOs on request.

Responsibilities:
1. Build lots (directly or from a ParkingLotConfig)
2. Park and exit vehicles
3. Report availability snapshots
4. Fan domain events out to subscribers (event store, revenue tracking)

Module-level functions (initialize, add_parking_spot, park_vehicle,
exit_vehicle, snapshot) mirror the service methods for callers that
prefer a handle-passing style.
"""

from typing import Dict, List, Optional, Callable
from datetime import datetime
import logging

from ..domain.models import (
    ParkingSpot, ParkingTicket, Vehicle, Money,
    TicketIdGenerator, TicketNotFoundError
)
from ..domain.aggregates import ParkingLot, StrategySelector
from ..domain.strategies import SpotFindingStrategy, FeeCalculationStrategy
from ..infrastructure.messaging import EventBus, InMemoryEventStore, RevenueTracker
from .config import ParkingLotConfig
from .dtos import (
    VehicleDTO, MoneyDTO, ParkingTicketDTO, ParkingAllocationDTO,
    ParkingExitDTO, ParkingLotSnapshotDTO
)


# ============================================================================
# MAIN PARKING SERVICE
# ============================================================================

class ParkingService:
    """
    Application service around a single ParkingLot

    Thread-safe: all allocation state lives in the lot, which serializes
    park and exit itself. Event handlers run on the calling thread after
    the lot operation has finished.
    """

    def __init__(self, parking_lot: ParkingLot, event_bus: Optional[EventBus] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.parking_lot = parking_lot
        self.event_bus = event_bus or EventBus()

        self.event_store = InMemoryEventStore()
        self.revenue_tracker = RevenueTracker(parking_lot.fee_strategy.currency)
        self.event_bus.subscribe_all(self.event_store)
        self.event_bus.subscribe_all(self.revenue_tracker)

        self.logger.info(f"ParkingService initialized for {parking_lot.name}")

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def add_parking_spot(self, floor_number: int, spot: ParkingSpot) -> None:
        self.parking_lot.add_parking_spot(floor_number, spot)

    def set_spot_finding_strategy(
        self,
        strategy: StrategySelector,
        floor_number: Optional[int] = None
    ) -> None:
        self.parking_lot.set_spot_finding_strategy(strategy, floor_number)

    def set_fee_strategy(self, fee_strategy: FeeCalculationStrategy) -> None:
        self.parking_lot.set_fee_strategy(fee_strategy)

    # ========================================================================
    # USE CASES
    # ========================================================================

    def park_vehicle(self, vehicle: Vehicle) -> Optional[ParkingTicket]:
        """
        Use Case: Vehicle Entry
        Returns: the ticket, or None when the lot has no fitting spot
        """
        try:
            return self.parking_lot.park_vehicle(vehicle)
        finally:
            self._publish_events()

    def exit_vehicle(self, ticket_id: str) -> Money:
        """
        Use Case: Vehicle Exit
        Returns: the fee charged
        Raises: TicketNotFoundError for unknown or already released tickets
        """
        try:
            return self.parking_lot.exit_vehicle(ticket_id)
        finally:
            self._publish_events()

    def park(self, request: VehicleDTO) -> ParkingAllocationDTO:
        """Park a vehicle described by a DTO"""
        self.logger.info(f"Processing parking request for {request.license_plate}")

        ticket = self.park_vehicle(request.to_domain())
        if ticket is None:
            return ParkingAllocationDTO(
                success=False,
                message=f"No available spot for {request.vehicle_type} {request.license_plate}"
            )

        return ParkingAllocationDTO(
            success=True,
            ticket=ParkingTicketDTO.from_ticket(ticket),
            message="Vehicle parked successfully"
        )

    def exit(self, ticket_id: str) -> ParkingExitDTO:
        """Exit a vehicle and report the result as a DTO"""
        self.logger.info(f"Processing exit request for ticket {ticket_id}")

        try:
            ticket = self.parking_lot.close_ticket(ticket_id)
        except TicketNotFoundError as e:
            return ParkingExitDTO(success=False, ticket_id=ticket_id, message=str(e))
        finally:
            self._publish_events()

        return ParkingExitDTO(
            success=True,
            ticket_id=ticket.ticket_id,
            license_plate=ticket.vehicle.license_plate.value,
            duration_minutes=ticket.get_parking_duration_in_minutes(),
            billable_hours=ticket.get_parking_duration_in_hours(),
            fee=MoneyDTO.from_money(ticket.fee),
            message="Vehicle exit processed"
        )

    # ========================================================================
    # QUERIES
    # ========================================================================

    def snapshot(self) -> ParkingLotSnapshotDTO:
        """Per-floor availability by size and the active ticket count"""
        return ParkingLotSnapshotDTO.from_status_report(self.parking_lot.get_status_report())

    def get_active_tickets(self) -> Dict[str, ParkingTicket]:
        return self.parking_lot.get_active_tickets()

    def find_tickets(self, license_plate: str) -> List[ParkingTicket]:
        return self.parking_lot.find_tickets_by_license_plate(license_plate)

    @property
    def total_revenue(self) -> Money:
        return self.revenue_tracker.total_revenue

    def _publish_events(self) -> None:
        self.event_bus.publish_all(self.parking_lot.clear_events())


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ParkingServiceFactory:
    """Builds ParkingService instances"""

    @staticmethod
    def create_service(
        name: str,
        floor_count: int,
        default_strategy: StrategySelector = SpotFindingStrategy.BEST_FIT,
        fee_strategy: Optional[FeeCalculationStrategy] = None,
        clock: Callable[[], datetime] = datetime.now,
        ticket_id_generator: Optional[TicketIdGenerator] = None,
        event_bus: Optional[EventBus] = None
    ) -> ParkingService:
        """Create a service over an empty lot"""
        parking_lot = ParkingLot(
            name,
            floor_count,
            default_strategy=default_strategy,
            fee_strategy=fee_strategy,
            clock=clock,
            ticket_id_generator=ticket_id_generator
        )
        return ParkingService(parking_lot, event_bus)

    @staticmethod
    def create_from_config(
        config: ParkingLotConfig,
        clock: Callable[[], datetime] = datetime.now,
        ticket_id_generator: Optional[TicketIdGenerator] = None,
        event_bus: Optional[EventBus] = None
    ) -> ParkingService:
        """Create a service over a lot populated from a config"""
        service = ParkingServiceFactory.create_service(
            config.name,
            config.floor_count,
            default_strategy=config.default_strategy,
            fee_strategy=config.pricing.build_strategy(),
            clock=clock,
            ticket_id_generator=ticket_id_generator,
            event_bus=event_bus
        )

        for floor_number, floor_config in enumerate(config.floors, start=1):
            if floor_config.strategy is not None:
                service.set_spot_finding_strategy(floor_config.strategy, floor_number)

        for floor_number, spot_id, size in config.iter_spots():
            service.add_parking_spot(floor_number, ParkingSpot(spot_id, size, floor_number))

        service.logger.info(
            f"Loaded {service.parking_lot.get_total_spots()} spots "
            f"on {config.floor_count} floors"
        )
        return service

    @staticmethod
    def create_default_service(**kwargs) -> ParkingService:
        """Create a service over the default Downtown Parking layout"""
        return ParkingServiceFactory.create_from_config(ParkingLotConfig.default(), **kwargs)


# ============================================================================
# HANDLE-BASED API
# ============================================================================

def initialize(
    name: str,
    floor_count: int,
    default_strategy: StrategySelector = SpotFindingStrategy.BEST_FIT,
    fee_strategy: Optional[FeeCalculationStrategy] = None,
    clock: Callable[[], datetime] = datetime.now
) -> ParkingService:
    """Create a new, empty lot and return its handle"""
    return ParkingServiceFactory.create_service(
        name, floor_count,
        default_strategy=default_strategy,
        fee_strategy=fee_strategy,
        clock=clock
    )


def add_parking_spot(handle: ParkingService, floor_number: int, spot: ParkingSpot) -> None:
    handle.add_parking_spot(floor_number, spot)


def park_vehicle(handle: ParkingService, vehicle: Vehicle) -> Optional[ParkingTicket]:
    return handle.park_vehicle(vehicle)


def exit_vehicle(handle: ParkingService, ticket_id: str) -> Money:
    return handle.exit_vehicle(ticket_id)


def snapshot(handle: ParkingService) -> ParkingLotSnapshotDTO:
    return handle.snapshot()
