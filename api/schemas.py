"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import ReservationStatus, RoomStatus, PaymentMethod, PaymentStatus


def _check_out_after_check_in(v, info: ValidationInfo):
    check_in = info.data.get('check_in')
    if check_in is not None and v <= check_in:
        raise ValueError('Check-out must be after check-in')
    return v


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================

class CreateRoomTypeRequest(BaseModel):
    """Create room type request DTO"""
    name: str
    capacity: int = Field(ge=1)
    nightly_price: Decimal = Field(ge=0)
    description: Optional[str] = None


class RoomTypeResponse(BaseModel):
    """Room type response DTO"""
    room_type_id: UUID
    name: str
    capacity: int
    nightly_price: Decimal
    description: Optional[str] = None
    active: bool


class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str
    floor: int
    room_type_id: UUID
    status: RoomStatus = RoomStatus.AVAILABLE
    description: Optional[str] = None


class ChangeRoomStatusRequest(BaseModel):
    """Room status change request DTO"""
    status: RoomStatus


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    number: str
    floor: int
    room_type_id: UUID
    status: str
    active: bool
    description: Optional[str] = None


class RegisterGuestRequest(BaseModel):
    """Register guest request DTO"""
    first_name: str
    last_name: str
    document_id: str
    document_type: str = "ID"
    email: Optional[str] = None
    phone: Optional[str] = None


class GuestResponse(BaseModel):
    """Guest response DTO"""
    guest_id: UUID
    first_name: str
    last_name: str
    full_name: str
    document_id: str
    document_type: str
    email: Optional[str] = None
    phone: Optional[str] = None


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO; nights and total_amount are advisory"""
    guest_id: UUID
    room_id: UUID
    check_in: date
    check_out: date
    status: ReservationStatus = ReservationStatus.PENDING
    notes: Optional[str] = None
    reservation_code: Optional[str] = Field(default=None, pattern=r"^RES-\d{4}-\d{4}$")
    nights: Optional[int] = None
    total_amount: Optional[Decimal] = None

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v, info: ValidationInfo):
        return _check_out_after_check_in(v, info)


class UpdateReservationRequest(BaseModel):
    """Full replacement of a reservation's mutable fields"""
    guest_id: UUID
    room_id: UUID
    check_in: date
    check_out: date
    status: Optional[ReservationStatus] = None
    notes: Optional[str] = None
    nights: Optional[int] = None
    total_amount: Optional[Decimal] = None

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v, info: ValidationInfo):
        return _check_out_after_check_in(v, info)


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    reservation_code: str
    guest_id: UUID
    room_id: UUID
    room_type_id: UUID
    check_in: date
    check_out: date
    nights: int
    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    created_at: datetime
    modified_at: datetime
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    version: int
    guest_name: Optional[str] = None
    room_number: Optional[str] = None
    room_type_name: Optional[str] = None


class PaginationMetadata(BaseModel):
    page: int
    page_size: int
    total_records: int
    total_pages: int


class PagedReservationResponse(BaseModel):
    """Paged reservation listing"""
    message: str
    data: List[ReservationResponse]
    pagination: PaginationMetadata


# ============================================================================
# BILLING SCHEMAS
# ============================================================================

class RecordPaymentRequest(BaseModel):
    """Record payment request DTO"""
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    reference: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    reservation_id: UUID
    amount: Decimal
    payment_date: datetime
    method: str
    status: str
    reference: Optional[str] = None


class AddConsumptionRequest(BaseModel):
    """Add service consumption request DTO"""
    service_id: UUID
    quantity: int = Field(ge=1, default=1)
    unit_price: Decimal = Field(ge=0)


class ConsumptionResponse(BaseModel):
    """Service consumption response DTO"""
    consumption_id: UUID
    reservation_id: UUID
    service_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    consumption_date: datetime


class BalanceResponse(BaseModel):
    """Balance response DTO"""
    room_amount: Decimal
    services_amount: Decimal
    amount_due: Decimal
    amount_paid: Decimal
    outstanding: Decimal
    settled: bool


# ============================================================================
# ERROR SCHEMA
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body for typed engine failures"""
    type: str
    message: str
    error_code: Optional[str] = None
    timestamp: datetime
    path: str
