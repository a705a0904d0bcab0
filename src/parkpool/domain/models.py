# File: src/parkpool/domain/models.py
"""
Domain Models for the Parking Spot Allocation Engine
Following Domain-Driven Design (DDD) principles with rich domain models

This module contains:
1. Domain Exceptions: Typed errors raised by the allocation engine
2. Value Objects: Immutable objects with no identity, only values
3. Enums: Spot sizes, spot statuses and vehicle types
4. Entities: Parking spots and parking tickets with identity and lifecycle
5. Domain Events: Events representing business occurrences

ParkingSpot is the single linearization point of the engine: every read
and every state transition of a spot goes through its own lock, so a
fit-check followed by a claim can never interleave with another claim.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
import itertools
import logging
import math
import re
import threading
import uuid


# ============================================================================
# DOMAIN EXCEPTIONS
# ============================================================================

class ParkingError(Exception):
    """Base exception for parking allocation errors"""
    pass


class InvalidFloorError(ParkingError, ValueError):
    """Raised when a floor number is outside 1..N"""

    def __init__(self, floor_number: int, floor_count: int):
        super().__init__(
            f"Invalid floor number: {floor_number} (valid range is 1..{floor_count})"
        )
        self.floor_number = floor_number
        self.floor_count = floor_count


class TicketNotFoundError(ParkingError, LookupError):
    """Raised when a ticket id is unknown or was already released"""

    def __init__(self, ticket_id: str):
        super().__init__(f"Invalid ticket ID: {ticket_id}")
        self.ticket_id = ticket_id


class InvariantViolationError(ParkingError):
    """Raised when the ticket index and spot occupancy disagree"""
    pass


# ============================================================================
# DOMAIN PRIMITIVES / VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)  # Value objects are immutable
class LicensePlate:
    """
    Value Object: License plate number with validation
    Identifies a vehicle at the gate
    """
    value: str

    def __post_init__(self):
        """Validate license plate after initialization"""
        if not self.value or not self.value.strip():
            raise ValueError("License plate cannot be empty")

        object.__setattr__(self, 'value', self.value.strip().upper())

        if len(self.value) < 2 or len(self.value) > 15:
            raise ValueError(f"License plate must be 2-15 characters, got: {self.value}")

        if not re.match(r'^[A-Z0-9\s\-]+$', self.value):
            raise ValueError(
                f"License plate can only contain letters, numbers, spaces, and hyphens: {self.value}"
            )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Money:
    """
    Value Object: Monetary amount with currency
    Provides arithmetic operations with validation
    """
    amount: Decimal
    currency: str = "USD"

    def __post_init__(self):
        """Validate money amount"""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        if self.amount < Decimal('0'):
            raise ValueError("Money amount cannot be negative")

        if len(self.currency) != 3:
            raise ValueError(f"Currency must be 3-letter code: {self.currency}")

    @classmethod
    def zero(cls, currency: str = "USD") -> 'Money':
        return cls(Decimal('0.00'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money amounts (same currency only)"""
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency} to {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, multiplier) -> 'Money':
        """Multiply money by a non-negative number"""
        multiplier = Decimal(str(multiplier))
        if multiplier < Decimal('0'):
            raise ValueError("Multiplier cannot be negative")
        return Money(self.amount * multiplier, self.currency)

    def format(self) -> str:
        """Format money for display"""
        return f"${self.amount:.2f} {self.currency}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": float(self.amount),
            "currency": self.currency
        }


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class SpotSize(Enum):
    """
    Enumeration of spot size categories, smallest first
    A spot can host any requirement at or below its own size
    """
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def rank(self) -> int:
        return _SIZE_RANKS[self]

    def can_host(self, required_size: 'SpotSize') -> bool:
        """
        Check whether a spot of this size accepts a vehicle needing required_size
        Large hosts all sizes, Medium hosts Small and Medium, Small hosts Small only
        """
        return required_size.rank <= self.rank

    def __str__(self) -> str:
        return self.value.title()


_SIZE_RANKS = {
    SpotSize.SMALL: 1,
    SpotSize.MEDIUM: 2,
    SpotSize.LARGE: 3,
}


class ParkingSpotStatus(Enum):
    """Occupancy states of a parking spot"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"    # Defined for completeness, never assigned by the engine


class VehicleType(Enum):
    """
    Enumeration of vehicle types
    Each type maps to exactly one required spot size
    """
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    BUS = "bus"

    @property
    def required_spot_size(self) -> SpotSize:
        """Get the smallest spot size this vehicle type needs"""
        return _REQUIRED_SPOT_SIZES[self]

    def __str__(self) -> str:
        return self.value.title()


_REQUIRED_SPOT_SIZES = {
    VehicleType.MOTORCYCLE: SpotSize.SMALL,
    VehicleType.CAR: SpotSize.MEDIUM,
    VehicleType.BUS: SpotSize.LARGE,
}


@dataclass(frozen=True)
class Vehicle:
    """
    Value Object: A vehicle requesting a spot
    Immutable after creation; its type decides the required spot size
    """
    license_plate: LicensePlate
    vehicle_type: VehicleType

    def __post_init__(self):
        if isinstance(self.license_plate, str):
            object.__setattr__(self, 'license_plate', LicensePlate(self.license_plate))
        if not isinstance(self.vehicle_type, VehicleType):
            object.__setattr__(self, 'vehicle_type', VehicleType(self.vehicle_type))

    @classmethod
    def motorcycle(cls, license_plate: str) -> 'Vehicle':
        return cls(LicensePlate(license_plate), VehicleType.MOTORCYCLE)

    @classmethod
    def car(cls, license_plate: str) -> 'Vehicle':
        return cls(LicensePlate(license_plate), VehicleType.CAR)

    @classmethod
    def bus(cls, license_plate: str) -> 'Vehicle':
        return cls(LicensePlate(license_plate), VehicleType.BUS)

    @property
    def required_spot_size(self) -> SpotSize:
        return self.vehicle_type.required_spot_size

    def to_dict(self) -> Dict[str, Any]:
        return {
            "license_plate": self.license_plate.value,
            "vehicle_type": self.vehicle_type.value,
            "required_spot_size": self.required_spot_size.value
        }

    def __str__(self) -> str:
        return f"{self.vehicle_type} [{self.license_plate}]"


# ============================================================================
# DOMAIN ENTITIES
# ============================================================================

class ParkingSpot:
    """
    Entity: Individual parking spot with a fixed size and an occupancy state
    Thread-safe: every read and mutation is serialized by a per-spot lock
    """

    def __init__(self, spot_id: str, size: SpotSize, floor_number: int):
        if not spot_id:
            raise ValueError("Spot ID cannot be empty")
        if floor_number < 1:
            raise ValueError("Floor number must be at least 1")

        self._spot_id = spot_id
        self._size = size
        self._floor_number = floor_number
        self._status = ParkingSpotStatus.AVAILABLE
        self._parked_vehicle: Optional[Vehicle] = None
        self._lock = threading.RLock()
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def spot_id(self) -> str:
        return self._spot_id

    @property
    def size(self) -> SpotSize:
        return self._size

    @property
    def floor_number(self) -> int:
        return self._floor_number

    @property
    def status(self) -> ParkingSpotStatus:
        with self._lock:
            return self._status

    @property
    def parked_vehicle(self) -> Optional[Vehicle]:
        with self._lock:
            return self._parked_vehicle

    def is_available(self) -> bool:
        """Check if the spot is free"""
        with self._lock:
            return self._status == ParkingSpotStatus.AVAILABLE

    def can_fit(self, required_size: SpotSize) -> bool:
        """Check if the spot is free and large enough for required_size"""
        with self._lock:
            return self.is_available() and self._size.can_host(required_size)

    def can_fit_vehicle(self, vehicle: Vehicle) -> bool:
        return self.can_fit(vehicle.required_spot_size)

    def claim(self, vehicle: Vehicle) -> bool:
        """
        Occupy the spot with a vehicle
        The fit check and the state flip happen under one lock hold
        Returns: True if the spot was claimed, False if it no longer fits
        """
        with self._lock:
            if not self.can_fit(vehicle.required_spot_size):
                return False
            self._parked_vehicle = vehicle
            self._status = ParkingSpotStatus.OCCUPIED
            return True

    def release(self) -> Optional[Vehicle]:
        """
        Vacate the spot
        Returns: the vehicle that was parked, None if the spot was already free
        """
        with self._lock:
            if self._status != ParkingSpotStatus.OCCUPIED:
                self._logger.warning(f"Release requested for free spot {self._spot_id}")
                return None

            vehicle = self._parked_vehicle
            self._parked_vehicle = None
            self._status = ParkingSpotStatus.AVAILABLE
            return vehicle

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "spot_id": self._spot_id,
                "size": self._size.value,
                "floor_number": self._floor_number,
                "status": self._status.value,
                "parked_vehicle": self._parked_vehicle.to_dict() if self._parked_vehicle else None
            }

    def __repr__(self) -> str:
        return f"ParkingSpot(id={self._spot_id})"

    def __str__(self) -> str:
        return (
            f"Spot[{self._spot_id}, Floor:{self._floor_number}, "
            f"Size:{self._size}, Status:{self.status.value}]"
        )


class TicketIdGenerator:
    """Thread-safe, monotonic ticket id source ("TKT-000001", "TKT-000002", ...)"""

    def __init__(self, prefix: str = "TKT", start: int = 1):
        self._prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{self._prefix}-{value:06d}"


# Shared by every lot in the process so ticket ids stay globally unique
default_ticket_id_generator = TicketIdGenerator()


def billable_hours(duration: timedelta) -> int:
    """
    Round a parking duration up to whole hours, minimum one hour
    90 minutes bills 2 hours; an immediate exit bills 1 hour
    """
    seconds = duration.total_seconds()
    if seconds < 0:
        raise ValueError("Parking duration cannot be negative")
    return max(1, math.ceil(seconds / 3600))


class ParkingTicket:
    """
    Entity: Record of one vehicle's use of one spot
    Created together with a successful claim, closed exactly once at exit
    """

    def __init__(
        self,
        ticket_id: str,
        vehicle: Vehicle,
        spot: ParkingSpot,
        entry_time: Optional[datetime] = None,
        currency: str = "USD"
    ):
        self._ticket_id = ticket_id
        self._vehicle = vehicle
        self._spot = spot
        self._entry_time = entry_time or datetime.now()
        self.exit_time: Optional[datetime] = None
        self.fee: Money = Money.zero(currency)
        self.is_paid: bool = False

    @property
    def ticket_id(self) -> str:
        return self._ticket_id

    @property
    def vehicle(self) -> Vehicle:
        return self._vehicle

    @property
    def spot(self) -> ParkingSpot:
        return self._spot

    @property
    def entry_time(self) -> datetime:
        return self._entry_time

    @property
    def is_closed(self) -> bool:
        return self.exit_time is not None

    def close(self, exit_time: datetime, fee: Money) -> None:
        """Record exit time and fee, and mark the ticket as paid"""
        if self.is_closed:
            raise ValueError(f"Ticket {self._ticket_id} is already closed")
        if exit_time < self._entry_time:
            raise ValueError("Exit time cannot be before entry time")

        self.exit_time = exit_time
        self.fee = fee
        self.is_paid = True

    @property
    def duration(self) -> Optional[timedelta]:
        if self.exit_time is None:
            return None
        return self.exit_time - self._entry_time

    def get_parking_duration_in_hours(self) -> int:
        """Billable hours, 0 while the ticket is still active"""
        if self.duration is None:
            return 0
        return billable_hours(self.duration)

    def get_parking_duration_in_minutes(self) -> int:
        if self.duration is None:
            return 0
        return int(self.duration.total_seconds() // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticket_id": self._ticket_id,
            "vehicle": self._vehicle.to_dict(),
            "spot_id": self._spot.spot_id,
            "floor_number": self._spot.floor_number,
            "entry_time": self._entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "fee": self.fee.to_dict(),
            "is_paid": self.is_paid
        }

    def __repr__(self) -> str:
        return f"ParkingTicket(id={self._ticket_id})"

    def __str__(self) -> str:
        return (
            f"Ticket[{self._ticket_id}, {self._vehicle}, Spot:{self._spot.spot_id}, "
            f"Entry:{self._entry_time.isoformat()}, Fee:{self.fee.format()}]"
        )


# ============================================================================
# DOMAIN EVENTS
# ============================================================================

class EventType(str, Enum):
    """Domain event types"""
    VEHICLE_PARKED = "vehicle.parked"
    VEHICLE_LEFT = "vehicle.left"


class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the domain
    """

    def __init__(self, timestamp: Optional[datetime] = None):
        self.event_id = str(uuid.uuid4())
        self.timestamp = timestamp or datetime.now()
        self.version = "1.0"

    @property
    @abstractmethod
    def event_type(self) -> EventType:
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        pass

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp}"


class VehicleParkedEvent(DomainEvent):
    """Event raised when a vehicle is parked"""

    def __init__(
        self,
        parking_lot_name: str,
        ticket_id: str,
        spot_id: str,
        floor_number: int,
        license_plate: str,
        vehicle_type: VehicleType,
        timestamp: Optional[datetime] = None
    ):
        super().__init__(timestamp)
        self.parking_lot_name = parking_lot_name
        self.ticket_id = ticket_id
        self.spot_id = spot_id
        self.floor_number = floor_number
        self.license_plate = license_plate
        self.vehicle_type = vehicle_type

    @property
    def event_type(self) -> EventType:
        return EventType.VEHICLE_PARKED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
            "data": {
                "parking_lot_name": self.parking_lot_name,
                "ticket_id": self.ticket_id,
                "spot_id": self.spot_id,
                "floor_number": self.floor_number,
                "license_plate": self.license_plate,
                "vehicle_type": self.vehicle_type.value
            }
        }


class VehicleLeftEvent(DomainEvent):
    """Event raised when a vehicle leaves"""

    def __init__(
        self,
        parking_lot_name: str,
        ticket_id: str,
        spot_id: str,
        license_plate: str,
        entry_time: datetime,
        exit_time: datetime,
        duration_minutes: int,
        fee_amount: Decimal
    ):
        super().__init__(exit_time)
        self.parking_lot_name = parking_lot_name
        self.ticket_id = ticket_id
        self.spot_id = spot_id
        self.license_plate = license_plate
        self.entry_time = entry_time
        self.exit_time = exit_time
        self.duration_minutes = duration_minutes
        self.fee_amount = fee_amount

    @property
    def event_type(self) -> EventType:
        return EventType.VEHICLE_LEFT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
            "data": {
                "parking_lot_name": self.parking_lot_name,
                "ticket_id": self.ticket_id,
                "spot_id": self.spot_id,
                "license_plate": self.license_plate,
                "entry_time": self.entry_time.isoformat(),
                "exit_time": self.exit_time.isoformat(),
                "duration_minutes": self.duration_minutes,
                "fee_amount": str(self.fee_amount)
            }
        }
