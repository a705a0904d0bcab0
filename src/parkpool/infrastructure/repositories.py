# File: src/parkpool/infrastructure/repositories.py
"""
Repository Pattern Implementation for the Parking Spot Allocation Engine

Repositories provide a collection-like interface over domain objects
while hiding how they are stored. The engine keeps only live state, so
the single implementation here is in memory: the index of active
parking tickets owned by a ParkingLot.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, List, Dict
import logging
import threading

from ..domain.models import ParkingTicket

# Type variables for generic repositories
T = TypeVar('T')  # Entity type
ID = TypeVar('ID')  # ID type


# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================

class Repository(ABC, Generic[T, ID]):
    """Base repository interface"""

    @abstractmethod
    def add(self, entity: T) -> T:
        """Add an entity to the repository"""
        pass

    @abstractmethod
    def get(self, id: ID) -> Optional[T]:
        """Get an entity by ID"""
        pass

    @abstractmethod
    def get_all(self) -> List[T]:
        """Get all entities"""
        pass

    @abstractmethod
    def delete(self, id: ID) -> bool:
        """Delete an entity by ID"""
        pass

    @abstractmethod
    def exists(self, id: ID) -> bool:
        """Check if an entity exists"""
        pass

    @abstractmethod
    def count(self) -> int:
        """Count all entities"""
        pass


# ============================================================================
# IN-MEMORY REPOSITORIES
# ============================================================================

class InMemoryTicketRepository(Repository[ParkingTicket, str]):
    """
    Index of active parking tickets keyed by ticket id
    Individually thread-safe; the owning lot serializes compound updates
    """

    def __init__(self):
        self._storage: Dict[str, ParkingTicket] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def add(self, entity: ParkingTicket) -> ParkingTicket:
        with self._lock:
            if entity.ticket_id in self._storage:
                raise ValueError(f"Ticket {entity.ticket_id} is already indexed")
            self._storage[entity.ticket_id] = entity
        self._logger.debug(f"Indexed ticket {entity.ticket_id}")
        return entity

    def get(self, id: str) -> Optional[ParkingTicket]:
        with self._lock:
            return self._storage.get(id)

    def get_all(self) -> List[ParkingTicket]:
        with self._lock:
            return list(self._storage.values())

    def delete(self, id: str) -> bool:
        with self._lock:
            removed = self._storage.pop(id, None)
        if removed is not None:
            self._logger.debug(f"Removed ticket {id}")
            return True
        return False

    def exists(self, id: str) -> bool:
        with self._lock:
            return id in self._storage

    def count(self) -> int:
        with self._lock:
            return len(self._storage)

    def as_dict(self) -> Dict[str, ParkingTicket]:
        """Copy of the index (ticket_id -> ticket)"""
        with self._lock:
            return dict(self._storage)

    def find_by_license_plate(self, license_plate: str) -> List[ParkingTicket]:
        """Find active tickets for a license plate"""
        plate = license_plate.strip().upper()
        with self._lock:
            return [
                ticket for ticket in self._storage.values()
                if ticket.vehicle.license_plate.value == plate
            ]

    def clear(self):
        """Clear all data (for testing)"""
        with self._lock:
            self._storage.clear()
