# File: src/parkpool/domain/aggregates.py
"""
Aggregate Roots for the Parking Spot Allocation Engine
Following Domain-Driven Design (DDD) Aggregate Pattern

Aggregates:
1. ParkingFloor - Ordered spots plus the policy used to search them
2. ParkingLot - Root aggregate for allocation: floors, active tickets, pricing

Locking:
- ParkingSpot guards its own state (fit check + claim is one step)
- ParkingFloor holds its lock across search and claim, so two requests
  can never pick the same spot on the same floor
- ParkingLot serializes park_vehicle / exit_vehicle, keeping the ticket
  index and spot occupancy consistent for every other caller
Locks nest lot -> floor -> spot and are never taken in the reverse order.
Reporting reads (counts, status report) skip the lot lock and are only
eventually consistent.
"""

from typing import List, Optional, Dict, Set, Tuple, Any, Callable, Union
from datetime import datetime
import logging
import threading
import uuid

from .models import (
    ParkingSpot, ParkingTicket, Vehicle, Money,
    SpotSize, ParkingSpotStatus, TicketIdGenerator, default_ticket_id_generator,
    DomainEvent, VehicleParkedEvent, VehicleLeftEvent,
    InvalidFloorError, TicketNotFoundError, InvariantViolationError
)
from .strategies import (
    SpotFindingStrategy, SpotFinder, FeeCalculationStrategy, HourlyFeeStrategy,
    resolve_spot_finder, strategy_name
)
from ..infrastructure.repositories import InMemoryTicketRepository


StrategySelector = Union[SpotFindingStrategy, str, SpotFinder]


# ============================================================================
# BASE AGGREGATE ROOT
# ============================================================================

class AggregateRoot:
    """
    Base class for all aggregate roots
    Provides identity, versioning and domain event collection
    """

    def __init__(self, id: Optional[str] = None):
        self._id = id or str(uuid.uuid4())
        self._version: int = 1
        self._changes: List[DomainEvent] = []
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def id(self) -> str:
        return self._id

    @property
    def version(self) -> int:
        return self._version

    def _increment_version(self) -> None:
        self._version += 1

    def _add_domain_event(self, event: DomainEvent) -> None:
        self._changes.append(event)
        self._logger.debug(f"Added domain event: {event.__class__.__name__}")

    def clear_events(self) -> List[DomainEvent]:
        """Clear and return all domain events"""
        events = self._changes.copy()
        self._changes.clear()
        return events

    @property
    def has_changes(self) -> bool:
        return len(self._changes) > 0


# ============================================================================
# PARKING FLOOR
# ============================================================================

class ParkingFloor:
    """
    A floor of the lot: spots in insertion order and a swappable search policy
    The floor lock is the atomicity boundary for search + claim
    """

    def __init__(self, floor_number: int, strategy: StrategySelector = SpotFindingStrategy.BEST_FIT):
        if floor_number < 1:
            raise ValueError("Floor number must be at least 1")

        self._floor_number = floor_number
        self._spots: List[ParkingSpot] = []
        self._strategy = strategy
        self._finder = resolve_spot_finder(strategy)
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def floor_number(self) -> int:
        return self._floor_number

    @property
    def spots(self) -> List[ParkingSpot]:
        with self._lock:
            return list(self._spots)

    @property
    def strategy(self) -> StrategySelector:
        with self._lock:
            return self._strategy

    def set_strategy(self, strategy: StrategySelector) -> None:
        """Swap the spot-finding policy at runtime"""
        finder = resolve_spot_finder(strategy)
        with self._lock:
            self._strategy = strategy
            self._finder = finder
        self._logger.info(f"Floor {self._floor_number} now uses {strategy_name(strategy)}")

    def add_spot(self, spot: ParkingSpot) -> None:
        if spot.floor_number != self._floor_number:
            raise ValueError(
                f"Spot {spot.spot_id} belongs to floor {spot.floor_number}, "
                f"not floor {self._floor_number}"
            )
        with self._lock:
            self._spots.append(spot)

    def find_available_spot(self, vehicle: Vehicle) -> Optional[ParkingSpot]:
        """
        Search for a candidate spot without claiming it
        The result may be taken by another caller once the lock is released
        """
        with self._lock:
            return self._finder(self._spots, vehicle.required_spot_size)

    def claim_available_spot(self, vehicle: Vehicle) -> Tuple[Optional[ParkingSpot], bool]:
        """
        Search and claim under a single hold of the floor lock
        Returns: (None, False) if nothing fits, (spot, True) if claimed,
                 (spot, False) if the chosen spot could not be claimed
        """
        with self._lock:
            spot = self._finder(self._spots, vehicle.required_spot_size)
            if spot is None:
                return None, False
            return spot, spot.claim(vehicle)

    def get_total_spot_count(self) -> int:
        with self._lock:
            return len(self._spots)

    def get_available_spot_count(self) -> int:
        return sum(1 for spot in self.spots if spot.is_available())

    def get_occupied_spot_count(self) -> int:
        return sum(1 for spot in self.spots if spot.status == ParkingSpotStatus.OCCUPIED)

    def get_available_spot_count_by_size(self, size: SpotSize) -> int:
        return sum(1 for spot in self.spots if spot.size == size and spot.is_available())

    def get_status(self) -> Dict[str, Any]:
        spots = self.spots
        return {
            "floor_number": self._floor_number,
            "strategy": strategy_name(self.strategy),
            "total_spots": len(spots),
            "available_spots": sum(1 for spot in spots if spot.is_available()),
            "available_by_size": {
                size.value: sum(1 for spot in spots if spot.size == size and spot.is_available())
                for size in SpotSize
            }
        }

    def __str__(self) -> str:
        return (
            f"Floor {self._floor_number} "
            f"[Available: {self.get_available_spot_count()}/{self.get_total_spot_count()}]"
        )


# ============================================================================
# PARKING LOT AGGREGATE
# ============================================================================

class ParkingLot(AggregateRoot):
    """
    Aggregate Root: the spot pool
    Owns floors 1..N, the active-ticket index, the default search policy
    and the fee policy. park_vehicle and exit_vehicle are atomic over the
    whole lot.
    """

    def __init__(
        self,
        name: str,
        floor_count: int,
        default_strategy: StrategySelector = SpotFindingStrategy.BEST_FIT,
        fee_strategy: Optional[FeeCalculationStrategy] = None,
        clock: Callable[[], datetime] = datetime.now,
        ticket_id_generator: Optional[TicketIdGenerator] = None,
        id: Optional[str] = None
    ):
        super().__init__(id)
        if not name or not name.strip():
            raise ValueError("Parking lot name cannot be empty")
        if floor_count < 1:
            raise ValueError(f"A parking lot needs at least one floor, got {floor_count}")

        self.name = name
        self._default_strategy = default_strategy
        self._fee_strategy = fee_strategy or HourlyFeeStrategy()
        self._clock = clock
        self._ticket_ids = ticket_id_generator or default_ticket_id_generator

        self._floors: List[ParkingFloor] = [
            ParkingFloor(number, default_strategy) for number in range(1, floor_count + 1)
        ]
        self._tickets = InMemoryTicketRepository()
        self._spot_ids: Set[str] = set()
        self._lock = threading.RLock()

        self._logger.info(f"Created ParkingLot: {self.name} with {floor_count} floors")

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    @property
    def floors(self) -> List[ParkingFloor]:
        return list(self._floors)

    @property
    def floor_count(self) -> int:
        return len(self._floors)

    @property
    def default_strategy(self) -> StrategySelector:
        return self._default_strategy

    @property
    def fee_strategy(self) -> FeeCalculationStrategy:
        return self._fee_strategy

    def get_floor(self, floor_number: int) -> ParkingFloor:
        if floor_number < 1 or floor_number > len(self._floors):
            raise InvalidFloorError(floor_number, len(self._floors))
        return self._floors[floor_number - 1]

    def add_parking_spot(self, floor_number: int, spot: ParkingSpot) -> None:
        """
        Add a spot to a floor
        Construction-time operation; not meant to race with parking traffic
        """
        floor = self.get_floor(floor_number)
        with self._lock:
            if spot.spot_id in self._spot_ids:
                raise ValueError(f"Duplicate spot ID: {spot.spot_id}")
            # An occupied spot would have no ticket in this lot
            if not spot.is_available():
                raise ValueError(f"Spot {spot.spot_id} must be available when added")
            floor.add_spot(spot)
            self._spot_ids.add(spot.spot_id)
        self._logger.debug(f"Added {spot} to floor {floor_number}")

    def set_spot_finding_strategy(
        self,
        strategy: StrategySelector,
        floor_number: Optional[int] = None
    ) -> None:
        """Swap the search policy of one floor, or of every floor and the default"""
        if floor_number is not None:
            self.get_floor(floor_number).set_strategy(strategy)
            return

        resolve_spot_finder(strategy)
        with self._lock:
            self._default_strategy = strategy
            for floor in self._floors:
                floor.set_strategy(strategy)

    def set_fee_strategy(self, fee_strategy: FeeCalculationStrategy) -> None:
        """Swap the fee policy; the currency is fixed for the life of the lot"""
        with self._lock:
            if fee_strategy.currency != self._fee_strategy.currency:
                raise ValueError(
                    f"Fee strategy currency {fee_strategy.currency} does not match "
                    f"lot currency {self._fee_strategy.currency}"
                )
            self._fee_strategy = fee_strategy
        self._logger.info(f"Fee strategy set to {fee_strategy}")

    # ========================================================================
    # ACQUIRE / RELEASE
    # ========================================================================

    def park_vehicle(self, vehicle: Vehicle) -> Optional[ParkingTicket]:
        """
        Park a vehicle in the first floor that has a fitting spot
        Returns: the new ticket, or None when no capacity is left.
        A spot that is found but cannot be claimed ends the request with
        None; remaining floors are not searched.
        """
        with self._lock:
            for floor in self._floors:
                spot, claimed = floor.claim_available_spot(vehicle)
                if spot is None:
                    continue

                if not claimed:
                    self._logger.warning(f"Failed to park {vehicle} in spot {spot.spot_id}")
                    return None

                ticket = ParkingTicket(
                    self._ticket_ids.next_id(),
                    vehicle,
                    spot,
                    entry_time=self._clock(),
                    currency=self._fee_strategy.currency
                )
                self._tickets.add(ticket)
                self._increment_version()
                self._add_domain_event(VehicleParkedEvent(
                    parking_lot_name=self.name,
                    ticket_id=ticket.ticket_id,
                    spot_id=spot.spot_id,
                    floor_number=spot.floor_number,
                    license_plate=vehicle.license_plate.value,
                    vehicle_type=vehicle.vehicle_type,
                    timestamp=ticket.entry_time
                ))

                self._logger.info(
                    f"Vehicle {vehicle} parked in spot {spot.spot_id} "
                    f"(Floor {spot.floor_number}, Ticket: {ticket.ticket_id})"
                )
                return ticket

            self._logger.warning(f"No available spot for {vehicle}")
            return None

    def close_ticket(self, ticket_id: str) -> ParkingTicket:
        """
        Finish a parking session and free its spot
        Returns: the closed ticket (no longer in the active index)
        Raises: TicketNotFoundError for unknown or already released ids
        """
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                self._logger.warning(f"Invalid ticket ID: {ticket_id}")
                raise TicketNotFoundError(ticket_id)

            # Wall clocks can step backwards; never bill a negative stay
            exit_time = max(self._clock(), ticket.entry_time)
            fee = self._fee_strategy.calculate_fee(
                ticket.vehicle.required_spot_size,
                exit_time - ticket.entry_time
            )

            ticket.close(exit_time, fee)
            ticket.spot.release()
            self._tickets.delete(ticket_id)
            self._increment_version()
            self._add_domain_event(VehicleLeftEvent(
                parking_lot_name=self.name,
                ticket_id=ticket_id,
                spot_id=ticket.spot.spot_id,
                license_plate=ticket.vehicle.license_plate.value,
                entry_time=ticket.entry_time,
                exit_time=exit_time,
                duration_minutes=ticket.get_parking_duration_in_minutes(),
                fee_amount=fee.amount
            ))

            self._logger.info(
                f"Vehicle {ticket.vehicle} left spot {ticket.spot.spot_id}. "
                f"Duration: {ticket.get_parking_duration_in_hours()}h, Fee: {fee.format()}"
            )
            return ticket

    def exit_vehicle(self, ticket_id: str) -> Money:
        """Release a ticket and return the fee charged for it"""
        return self.close_ticket(ticket_id).fee

    def clear_events(self) -> List[DomainEvent]:
        with self._lock:
            return super().clear_events()

    # ========================================================================
    # QUERY METHODS (Read-only)
    # ========================================================================

    def get_ticket(self, ticket_id: str) -> Optional[ParkingTicket]:
        return self._tickets.get(ticket_id)

    def get_active_tickets(self) -> Dict[str, ParkingTicket]:
        return self._tickets.as_dict()

    def find_tickets_by_license_plate(self, license_plate: str) -> List[ParkingTicket]:
        return self._tickets.find_by_license_plate(license_plate)

    @property
    def active_ticket_count(self) -> int:
        return self._tickets.count()

    def get_total_available_spots(self) -> int:
        return sum(floor.get_available_spot_count() for floor in self._floors)

    def get_total_spots(self) -> int:
        return sum(floor.get_total_spot_count() for floor in self._floors)

    def get_occupancy_rate(self) -> float:
        """Occupancy rate (0-100)"""
        total = self.get_total_spots()
        if total == 0:
            return 0.0
        return (total - self.get_total_available_spots()) / total * 100.0

    def get_status_report(self) -> Dict[str, Any]:
        """Availability per floor and size, plus the number of active tickets"""
        floors = [floor.get_status() for floor in self._floors]
        total = sum(floor["total_spots"] for floor in floors)
        available = sum(floor["available_spots"] for floor in floors)
        return {
            "parking_lot_id": self.id,
            "name": self.name,
            "total_spots": total,
            "available_spots": available,
            "occupied_spots": total - available,
            "active_tickets": self._tickets.count(),
            "floors": floors
        }

    def validate_invariants(self) -> None:
        """
        Check spot conservation and the ticket <-> occupied spot bijection
        Raises: InvariantViolationError on the first inconsistency found
        """
        with self._lock:
            occupied: Dict[str, ParkingSpot] = {}
            for floor in self._floors:
                spots = floor.spots
                available = sum(1 for spot in spots if spot.status == ParkingSpotStatus.AVAILABLE)
                taken = [spot for spot in spots if spot.status == ParkingSpotStatus.OCCUPIED]
                if available + len(taken) != len(spots):
                    raise InvariantViolationError(
                        f"Floor {floor.floor_number}: {available} available + {len(taken)} occupied "
                        f"!= {len(spots)} spots"
                    )
                for spot in taken:
                    if spot.parked_vehicle is None:
                        raise InvariantViolationError(f"Spot {spot.spot_id} is occupied without a vehicle")
                    occupied[spot.spot_id] = spot

            tickets = self._tickets.get_all()
            ticketed_spots = {ticket.spot.spot_id for ticket in tickets}
            if len(ticketed_spots) != len(tickets):
                raise InvariantViolationError("Two active tickets share one spot")
            if ticketed_spots != set(occupied):
                raise InvariantViolationError(
                    f"Active tickets cover {sorted(ticketed_spots)} "
                    f"but occupied spots are {sorted(occupied)}"
                )
            for ticket in tickets:
                if ticket.spot.parked_vehicle != ticket.vehicle:
                    raise InvariantViolationError(
                        f"Ticket {ticket.ticket_id} does not match the vehicle in spot {ticket.spot.spot_id}"
                    )

    def __str__(self) -> str:
        return (
            f"ParkingLot {self.name}: {self.get_total_available_spots()}/"
            f"{self.get_total_spots()} available, {self.active_ticket_count} active tickets"
        )
