"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import List, Optional
from decimal import Decimal

from domain.enums import (
    ReservationStatus, RoomStatus, PaymentStatus, PaymentMethod,
    RESERVATION_TRANSITIONS, BLOCKING_STATUSES, ACTIVE_STATUSES
)
from domain.errors import DomainError
from domain.value_objects import DateRange


class RoomType(BaseModel):
    """Room category with its nightly price"""
    room_type_id: UUID = Field(default_factory=uuid4)
    name: str
    capacity: int = Field(ge=1)
    nightly_price: Decimal = Field(ge=0)
    description: Optional[str] = None
    active: bool = True

    class Config:
        from_attributes = True

    def price_for(self, nights: int) -> Decimal:
        return self.nightly_price * nights


class Room(BaseModel):
    """Physical room in the hotel inventory"""
    room_id: UUID = Field(default_factory=uuid4)
    number: str
    floor: int
    room_type_id: UUID
    status: RoomStatus = RoomStatus.AVAILABLE
    active: bool = True
    description: Optional[str] = None
    version: int = 1

    class Config:
        from_attributes = True

    def is_bookable(self) -> bool:
        """Room can take new guests right now"""
        return self.active and self.status == RoomStatus.AVAILABLE

    def ensure_available(self) -> None:
        if self.status != RoomStatus.AVAILABLE:
            raise DomainError.invalid_state(
                f"Room {self.number} is not available. Current status: {self.status.value}",
                "ROOM_NOT_AVAILABLE"
            )

    def occupy(self) -> None:
        self.ensure_available()
        self.status = RoomStatus.OCCUPIED

    def release_for_cleaning(self) -> None:
        self.status = RoomStatus.CLEANING

    def change_status(self, status: RoomStatus) -> None:
        """Housekeeping / maintenance status change"""
        if self.status == RoomStatus.OCCUPIED and status == RoomStatus.AVAILABLE:
            raise DomainError.invalid_state(
                f"Room {self.number} is occupied; it must be checked out and cleaned first",
                "ROOM_OCCUPIED"
            )
        self.status = status


class Guest(BaseModel):
    """Hotel guest"""
    guest_id: UUID = Field(default_factory=uuid4)
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    document_id: str
    document_type: str = "ID"

    class Config:
        from_attributes = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Payment(BaseModel):
    """Payment recorded against a reservation"""
    payment_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    amount: Decimal = Field(gt=0)
    payment_date: datetime
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    reference: Optional[str] = None

    class Config:
        from_attributes = True

    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


class ServiceConsumption(BaseModel):
    """Additional service (minibar, spa, laundry...) consumed during a stay"""
    consumption_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    service_id: UUID
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    consumption_date: datetime

    class Config:
        from_attributes = True

    @staticmethod
    def record(
        reservation_id: UUID,
        service_id: UUID,
        quantity: int,
        unit_price: Decimal,
        consumed_at: datetime
    ) -> "ServiceConsumption":
        return ServiceConsumption(
            reservation_id=reservation_id,
            service_id=service_id,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=unit_price * quantity,
            consumption_date=consumed_at
        )


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    reservation_code: str

    # References (ids only, joined by the data-access layer)
    guest_id: UUID
    room_id: UUID
    room_type_id: UUID

    # Stay
    date_range: DateRange
    nights: int = Field(ge=1)
    total_amount: Decimal = Field(ge=0)

    status: ReservationStatus = ReservationStatus.PENDING
    notes: Optional[str] = None

    # Timestamps
    created_at: datetime
    modified_at: datetime
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None

    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        reservation_code: str,
        guest_id: UUID,
        room: Room,
        room_type: RoomType,
        date_range: DateRange,
        created_at: datetime,
        status: ReservationStatus = ReservationStatus.PENDING,
        notes: Optional[str] = None
    ) -> "Reservation":
        """Create new reservation with server-computed nights and total"""
        if status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise DomainError.invalid_state(
                f"A reservation cannot be created in {status.value} status",
                "INVALID_INITIAL_STATUS"
            )

        nights = date_range.nights()
        return Reservation(
            reservation_code=reservation_code,
            guest_id=guest_id,
            room_id=room.room_id,
            room_type_id=room_type.room_type_id,
            date_range=date_range,
            nights=nights,
            total_amount=room_type.price_for(nights),
            status=status,
            notes=notes,
            created_at=created_at,
            modified_at=created_at
        )

    # ==================== PROPERTIES ====================
    @property
    def check_in(self) -> date:
        return self.date_range.check_in

    @property
    def check_out(self) -> date:
        return self.date_range.check_out

    # ==================== MODIFICATION METHODS ====================
    def reschedule(self, room: Room, room_type: RoomType, date_range: DateRange, now: datetime) -> None:
        """Replace room and dates, recomputing nights and total"""
        self.ensure_modifiable()
        if self.status == ReservationStatus.IN_PROGRESS and room.room_id != self.room_id:
            raise DomainError.invalid_state(
                "Cannot move an in-progress reservation to another room",
                "RESERVATION_IN_PROGRESS"
            )

        self.room_id = room.room_id
        self.room_type_id = room_type.room_type_id
        self.date_range = date_range
        self.reprice(room_type)
        self.modified_at = now

    def reprice(self, room_type: RoomType) -> None:
        self.nights = self.date_range.nights()
        self.total_amount = room_type.price_for(self.nights)

    # ==================== STATE TRANSITION METHODS ====================
    def can_transition_to(self, status: ReservationStatus) -> bool:
        return status in RESERVATION_TRANSITIONS[self.status]

    def _transition(self, status: ReservationStatus, now: datetime) -> None:
        if not self.can_transition_to(status):
            raise DomainError.invalid_state(
                f"Cannot move reservation from {self.status.value} to {status.value}",
                "INVALID_TRANSITION"
            )
        self.status = status
        self.modified_at = now

    def confirm(self, now: datetime) -> None:
        """Pending -> Confirmed"""
        self._transition(ReservationStatus.CONFIRMED, now)

    def cancel(self, now: datetime) -> None:
        """Pending | Confirmed -> Cancelled"""
        self._transition(ReservationStatus.CANCELLED, now)

    def start_stay(self, today: date, now: datetime) -> None:
        """Confirmed -> In progress, no earlier than the planned check-in date"""
        if self.status != ReservationStatus.CONFIRMED:
            raise DomainError.invalid_state(
                f"Only confirmed reservations can be checked in. Current status: {self.status.value}",
                "INVALID_STATUS"
            )

        if self.check_in > today:
            raise DomainError.invalid_state(
                f"Check-in date is {self.check_in.isoformat()}; cannot check in before that date",
                "CHECK_IN_DATE_IN_FUTURE"
            )

        self._transition(ReservationStatus.IN_PROGRESS, now)
        self.actual_check_in = now

    def ensure_in_progress(self) -> None:
        if self.status != ReservationStatus.IN_PROGRESS:
            raise DomainError.invalid_state(
                f"Only in-progress reservations can be checked out. Current status: {self.status.value}",
                "INVALID_STATUS"
            )

    def complete_stay(self, now: datetime) -> None:
        """In progress -> Completed"""
        self.ensure_in_progress()
        self._transition(ReservationStatus.COMPLETED, now)
        self.actual_check_out = now

    # ==================== QUERY METHODS ====================
    def is_finalized(self) -> bool:
        return self.status in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)

    def blocks_room(self) -> bool:
        """Counts against the room's availability"""
        return self.status in BLOCKING_STATUSES

    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def overlaps(self, date_range: DateRange) -> bool:
        return self.date_range.overlaps(date_range)

    def ensure_modifiable(self) -> None:
        if self.status == ReservationStatus.COMPLETED:
            raise DomainError.invalid_state(
                "Cannot modify a completed reservation", "RESERVATION_COMPLETED"
            )
        if self.status == ReservationStatus.CANCELLED:
            raise DomainError.invalid_state(
                "Cannot modify a cancelled reservation", "RESERVATION_CANCELLED"
            )

    def ensure_deletable(self) -> None:
        if self.status == ReservationStatus.IN_PROGRESS:
            raise DomainError.invalid_state(
                "Cannot delete an in-progress reservation; it must be completed via check-out first",
                "RESERVATION_IN_PROGRESS"
            )


class ReservationDetails(BaseModel):
    """Read model: a reservation joined with its guest, room and room type"""
    reservation: Reservation
    guest: Optional[Guest] = None
    room: Optional[Room] = None
    room_type: Optional[RoomType] = None

    class Config:
        from_attributes = True


class ReservationPage(BaseModel):
    """One page of a filtered reservation listing"""
    items: List[ReservationDetails]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size
