"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional, List
from uuid import UUID
from datetime import date

from domain.entities import (
    Reservation, ReservationDetails, Room, RoomType, Guest, Payment, ServiceConsumption
)


class RoomRepository(ABC):
    """Repository interface for rooms"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Insert room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, number: str) -> Optional[Room]:
        """Find room by its number"""
        pass

    @abstractmethod
    async def find_all(self, active_only: bool = False) -> List[Room]:
        """Find all rooms"""
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        """Update room"""
        pass


class RoomTypeRepository(ABC):
    """Repository interface for room types"""

    @abstractmethod
    async def save(self, room_type: RoomType) -> RoomType:
        pass

    @abstractmethod
    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        pass

    @abstractmethod
    async def find_all(self, active_only: bool = False) -> List[RoomType]:
        pass


class GuestRepository(ABC):
    """Repository interface for guests"""

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Guest]:
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Insert reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Reservation]:
        """Find reservation by reservation code"""
        pass

    @abstractmethod
    async def find_by_room_id(self, room_id: UUID) -> List[Reservation]:
        """Find reservations for a room"""
        pass

    @abstractmethod
    async def find_in_date_range(self, start: date, end: date) -> List[Reservation]:
        """Find reservations whose stay touches [start, end] (inclusive, coarse pre-filter)"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        pass

    @abstractmethod
    async def delete(self, reservation_id: UUID) -> bool:
        """Delete reservation"""
        pass


class PaymentRepository(ABC):
    """Repository interface for payments"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        pass


class ServiceConsumptionRepository(ABC):
    """Repository interface for additional service consumption"""

    @abstractmethod
    async def save(self, consumption: ServiceConsumption) -> ServiceConsumption:
        pass

    @abstractmethod
    async def find_by_reservation_id(self, reservation_id: UUID) -> List[ServiceConsumption]:
        pass

    @abstractmethod
    async def find_all(self) -> List[ServiceConsumption]:
        pass


class UnitOfWork(ABC):
    """Transactional boundary over all repositories.

    Writes made through the repositories are staged and only become visible
    to other operations on ``commit()``; ``rollback()`` discards them.
    ``room_lock`` serialises writers competing for the same room so that
    check-then-act sequences (availability check + insert, check-in) are atomic.
    """

    rooms: RoomRepository
    room_types: RoomTypeRepository
    guests: GuestRepository
    reservations: ReservationRepository
    payments: PaymentRepository
    consumptions: ServiceConsumptionRepository

    @abstractmethod
    def room_lock(self, room_id: UUID) -> AsyncContextManager:
        """Exclusive write access to one room"""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """Apply all staged writes, or none of them"""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged writes"""
        pass

    @abstractmethod
    async def hydrate(self, reservations: List[Reservation]) -> List[ReservationDetails]:
        """Join guest, room and room type onto each reservation"""
        pass
