# File: src/parkpool/application/dtos.py
"""
Data Transfer Objects (DTOs) for the Parking Spot Allocation Engine

DTOs carry data out of the engine in a serializable form:
1. Input DTOs - Vehicle requests from callers
2. Output DTOs - Tickets, park/exit results and lot snapshots

DTO Principles:
- Validation at creation
- No business logic, only data
- Serialization support through pydantic
"""

from typing import Dict, List, Optional, Any
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..domain.models import LicensePlate, Money, ParkingTicket, Vehicle, VehicleType


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        return self.model_dump(exclude_none=exclude_none, **kwargs)

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        return cls.model_validate(data)


# ============================================================================
# VALUE DTOs
# ============================================================================

class MoneyDTO(BaseDTO):
    """Monetary amount"""
    amount: Decimal = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyDTO':
        return cls(amount=money.amount, currency=money.currency)


class VehicleDTO(BaseDTO):
    """Vehicle arriving at the gate"""
    license_plate: str = Field(min_length=2, max_length=15)
    vehicle_type: VehicleType

    def to_domain(self) -> Vehicle:
        return Vehicle(LicensePlate(self.license_plate), VehicleType(self.vehicle_type))


# ============================================================================
# TICKET DTOs
# ============================================================================

class ParkingTicketDTO(BaseDTO):
    """A parking ticket, active or closed"""
    ticket_id: str
    license_plate: str
    vehicle_type: VehicleType
    spot_id: str
    floor_number: int
    entry_time: datetime
    exit_time: Optional[datetime] = None
    fee: MoneyDTO
    is_paid: bool = False

    @classmethod
    def from_ticket(cls, ticket: ParkingTicket) -> 'ParkingTicketDTO':
        return cls(
            ticket_id=ticket.ticket_id,
            license_plate=ticket.vehicle.license_plate.value,
            vehicle_type=ticket.vehicle.vehicle_type,
            spot_id=ticket.spot.spot_id,
            floor_number=ticket.spot.floor_number,
            entry_time=ticket.entry_time,
            exit_time=ticket.exit_time,
            fee=MoneyDTO.from_money(ticket.fee),
            is_paid=ticket.is_paid
        )


class ParkingAllocationDTO(BaseDTO):
    """Result of a park request"""
    success: bool
    ticket: Optional[ParkingTicketDTO] = None
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


class ParkingExitDTO(BaseDTO):
    """Result of an exit request"""
    success: bool
    ticket_id: str
    license_plate: Optional[str] = None
    duration_minutes: Optional[int] = None
    billable_hours: Optional[int] = None
    fee: Optional[MoneyDTO] = None
    message: str = ""


# ============================================================================
# SNAPSHOT DTOs
# ============================================================================

class FloorAvailabilityDTO(BaseDTO):
    """Availability of one floor"""
    floor_number: int = Field(ge=1)
    strategy: str
    total_spots: int = Field(ge=0)
    available_spots: int = Field(ge=0)
    available_by_size: Dict[str, int]


class ParkingLotSnapshotDTO(BaseDTO):
    """Point-in-time availability of a whole lot"""
    name: str
    total_spots: int = Field(ge=0)
    available_spots: int = Field(ge=0)
    occupied_spots: int = Field(ge=0)
    active_tickets: int = Field(ge=0)
    floors: List[FloorAvailabilityDTO]
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_status_report(cls, report: Dict[str, Any]) -> 'ParkingLotSnapshotDTO':
        return cls(
            name=report["name"],
            total_spots=report["total_spots"],
            available_spots=report["available_spots"],
            occupied_spots=report["occupied_spots"],
            active_tickets=report["active_tickets"],
            floors=[FloorAvailabilityDTO(**floor) for floor in report["floors"]]
        )

    @property
    def occupancy_rate(self) -> float:
        if self.total_spots == 0:
            return 0.0
        return self.occupied_spots / self.total_spots * 100.0
