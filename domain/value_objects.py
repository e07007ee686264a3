"""Domain Value Objects"""
import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from domain.enums import ReservationStatus
from domain.errors import DomainError

RESERVATION_CODE_PATTERN = re.compile(r"^RES-(\d{4})-(\d{4})$")


class DateRange(BaseModel):
    """Half-open stay range: check-in inclusive, check-out exclusive"""
    check_in: date
    check_out: date

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v, info: ValidationInfo):
        check_in = info.data.get('check_in')
        if check_in is not None and v <= check_in:
            raise ValueError('Check-out must be after check-in')
        return v

    @classmethod
    def of(cls, check_in: date, check_out: date) -> "DateRange":
        """Build a range, reporting bad ordering as a validation failure"""
        if check_out <= check_in:
            raise DomainError.validation(
                f"Check-out ({check_out}) must be after check-in ({check_in})",
                "INVALID_DATE_RANGE"
            )
        return cls(check_in=check_in, check_out=check_out)

    @classmethod
    def for_period(cls, start: date, end: date) -> "DateRange":
        """Inclusive reporting period [start, end] as the half-open range [start, end + 1)"""
        if end < start:
            raise DomainError.validation(
                f"Period end ({end}) must not be before start ({start})",
                "INVALID_PERIOD"
            )
        return cls(check_in=start, check_out=end + timedelta(days=1))

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        """Two half-open ranges overlap iff each one starts before the other ends"""
        return self.check_in < other.check_out and other.check_in < self.check_out

    def contains(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    class Config:
        frozen = True


class ReservationFilter(BaseModel):
    """Query filter for the paged reservation listing"""
    status: Optional[ReservationStatus] = None
    guest_id: Optional[UUID] = None
    check_in_from: Optional[date] = None
    check_out_to: Optional[date] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)

    def matches(self, reservation) -> bool:
        if self.status is not None and reservation.status != self.status:
            return False
        if self.guest_id is not None and reservation.guest_id != self.guest_id:
            return False
        if self.check_in_from is not None and reservation.check_in < self.check_in_from:
            return False
        if self.check_out_to is not None and reservation.check_out > self.check_out_to:
            return False
        return True

    class Config:
        frozen = True


def parse_reservation_code(code: str) -> tuple:
    """Split RES-YYYY-NNNN into (year, sequence)"""
    match = RESERVATION_CODE_PATTERN.match(code or "")
    if not match:
        raise DomainError.validation(
            f"Reservation code '{code}' must have the format RES-YYYY-NNNN",
            "INVALID_RESERVATION_CODE"
        )
    return int(match.group(1)), int(match.group(2))


def format_reservation_code(year: int, sequence: int) -> str:
    return f"RES-{year:04d}-{sequence:04d}"


class Balance(BaseModel):
    """What a reservation owes against what has been paid"""
    room_amount: Decimal
    services_amount: Decimal
    amount_paid: Decimal

    @property
    def amount_due(self) -> Decimal:
        return self.room_amount + self.services_amount

    @property
    def outstanding(self) -> Decimal:
        return self.amount_due - self.amount_paid

    def is_settled(self) -> bool:
        return self.amount_paid >= self.amount_due

    class Config:
        frozen = True
