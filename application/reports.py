"""Reporting - read-only occupancy, revenue and guest statistics"""
import logging
import calendar
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from domain.clock import Clock
from domain.entities import Reservation
from domain.enums import ReservationStatus
from domain.errors import DomainError
from domain.repositories import UnitOfWork
from domain.results import Result
from domain.value_objects import DateRange
from infrastructure import config

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def round_money(value) -> Decimal:
    """Round half up to 2 decimal places"""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percentage(part, whole) -> Decimal:
    """part / whole as a percentage; 0 when whole is 0"""
    if not whole:
        return round_money(ZERO)
    return round_money(Decimal(part) * 100 / Decimal(whole))


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of a shorter month"""
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the month containing ``day``"""
    first = day.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


# ============================================================================
# REPORT MODELS
# ============================================================================

class RoomTypeOccupancy(BaseModel):
    room_type_id: UUID
    room_type: str
    total_rooms: int
    occupied_rooms: int
    occupancy_pct: Decimal


class OccupancyReport(BaseModel):
    start_date: date
    end_date: date
    total_rooms: int
    occupied_rooms: int
    available_rooms: int
    occupancy_pct: Decimal
    by_room_type: List[RoomTypeOccupancy]


class RoomTypeRevenue(BaseModel):
    room_type: str
    reservation_count: int
    revenue: Decimal


class DailyRevenue(BaseModel):
    day: date
    reservation_count: int
    revenue: Decimal


class FinancialReport(BaseModel):
    start_date: date
    end_date: date
    total_reservations: int
    revenue_total: Decimal
    revenue_from_rooms: Decimal
    revenue_from_services: Decimal
    avg_revenue_per_reservation: Decimal
    by_room_type: List[RoomTypeRevenue]
    by_day: List[DailyRevenue]


class FrequentGuest(BaseModel):
    guest_id: UUID
    full_name: str
    email: Optional[str] = None
    reservation_count: int
    total_spent: Decimal
    last_reservation_date: datetime


class StatusBreakdown(BaseModel):
    status: ReservationStatus
    count: int
    percentage: Decimal


class GuestReport(BaseModel):
    total_guests: int
    guests_with_reservations: int
    frequent_guests: List[FrequentGuest]
    status_breakdown: List[StatusBreakdown]


class DashboardReport(BaseModel):
    """Current-month overview combining the three reports"""
    period_start: date
    period_end: date
    occupancy_pct: Decimal
    occupied_rooms: int
    available_rooms: int
    total_rooms: int
    revenue_total: Decimal
    revenue_from_rooms: Decimal
    revenue_from_services: Decimal
    total_reservations: int
    avg_revenue_per_reservation: Decimal
    total_guests: int
    guests_with_reservations: int
    top_guests: List[FrequentGuest]
    status_breakdown: List[StatusBreakdown]


# ============================================================================
# SERVICE
# ============================================================================

class ReportService:
    """Service for derived reporting views"""

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def occupancy_report(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Result[OccupancyReport]:
        """Rooms holding a confirmed or in-progress stay during [start, end].

        With no dates, covers the current calendar month. A start alone covers
        one month from that day; an end alone covers its month up to that day.
        Uses the same half-open overlap rule as availability checks.
        """
        if start_date is None and end_date is None:
            start_date, end_date = month_bounds(self.clock.today())
        elif end_date is None:
            end_date = add_months(start_date, 1) - timedelta(days=1)
        elif start_date is None:
            start_date = end_date.replace(day=1)
        try:
            period = DateRange.for_period(start_date, end_date)
        except DomainError as e:
            return Result.fail(e)

        logger.debug("Occupancy report for %s..%s", start_date, end_date)
        rooms = await self.uow.rooms.find_all(active_only=True)
        room_ids = {room.room_id for room in rooms}

        candidates = await self.uow.reservations.find_in_date_range(start_date, end_date)
        occupied_ids = {
            r.room_id for r in candidates
            if r.is_active() and r.overlaps(period) and r.room_id in room_ids
        }

        # Every type referenced by an active room, so the rows add up to the totals
        type_ids = {room.room_type_id for room in rooms}
        room_types = [t for t in await self.uow.room_types.find_all() if t.room_type_id in type_ids]

        by_room_type = []
        for room_type in sorted(room_types, key=lambda t: t.name):
            type_room_ids = {room.room_id for room in rooms if room.room_type_id == room_type.room_type_id}
            occupied = len(type_room_ids & occupied_ids)
            by_room_type.append(RoomTypeOccupancy(
                room_type_id=room_type.room_type_id,
                room_type=room_type.name,
                total_rooms=len(type_room_ids),
                occupied_rooms=occupied,
                occupancy_pct=percentage(occupied, len(type_room_ids))
            ))

        total = len(rooms)
        occupied_count = len(occupied_ids)
        return Result.ok(OccupancyReport(
            start_date=start_date,
            end_date=end_date,
            total_rooms=total,
            occupied_rooms=occupied_count,
            available_rooms=total - occupied_count,
            occupancy_pct=percentage(occupied_count, total),
            by_room_type=by_room_type
        ))

    async def financial_report(self, start_date: date, end_date: date) -> Result[FinancialReport]:
        """Revenue of non-cancelled reservations created within [start, end]"""
        if end_date < start_date:
            return Result.fail(DomainError.validation(
                f"Period end ({end_date}) must not be before start ({start_date})", "INVALID_PERIOD"
            ))

        in_scope = [
            r for r in await self.uow.reservations.find_all()
            if start_date <= r.created_at.date() <= end_date
            and r.status != ReservationStatus.CANCELLED
        ]
        scope_ids = {r.reservation_id for r in in_scope}

        revenue_from_rooms = sum((r.total_amount for r in in_scope), ZERO)
        revenue_from_services = sum(
            (c.subtotal for c in await self.uow.consumptions.find_all() if c.reservation_id in scope_ids),
            ZERO
        )
        revenue_total = revenue_from_rooms + revenue_from_services
        average = revenue_total / len(in_scope) if in_scope else ZERO

        return Result.ok(FinancialReport(
            start_date=start_date,
            end_date=end_date,
            total_reservations=len(in_scope),
            revenue_total=round_money(revenue_total),
            revenue_from_rooms=round_money(revenue_from_rooms),
            revenue_from_services=round_money(revenue_from_services),
            avg_revenue_per_reservation=round_money(average),
            by_room_type=await self._revenue_by_room_type(in_scope),
            by_day=self._revenue_by_day(in_scope)
        ))

    async def _revenue_by_room_type(self, reservations: List[Reservation]) -> List[RoomTypeRevenue]:
        names = {t.room_type_id: t.name for t in await self.uow.room_types.find_all()}
        groups: Dict[str, List[Reservation]] = defaultdict(list)
        for reservation in reservations:
            groups[names.get(reservation.room_type_id, "Unknown")].append(reservation)

        rows = [
            RoomTypeRevenue(
                room_type=name,
                reservation_count=len(group),
                revenue=round_money(sum((r.total_amount for r in group), ZERO))
            )
            for name, group in groups.items()
        ]
        rows.sort(key=lambda row: (-row.revenue, row.room_type))
        return rows

    @staticmethod
    def _revenue_by_day(reservations: List[Reservation]) -> List[DailyRevenue]:
        groups: Dict[date, List[Reservation]] = defaultdict(list)
        for reservation in reservations:
            groups[reservation.created_at.date()].append(reservation)

        return [
            DailyRevenue(
                day=day,
                reservation_count=len(groups[day]),
                revenue=round_money(sum((r.total_amount for r in groups[day]), ZERO))
            )
            for day in sorted(groups)
        ]

    async def guest_report(self, limit: Optional[int] = None) -> Result[GuestReport]:
        """Guest totals, most frequent guests and reservation status breakdown"""
        if limit is None:
            limit = config.FREQUENT_GUESTS_LIMIT
        guests = {g.guest_id: g for g in await self.uow.guests.find_all()}
        reservations = await self.uow.reservations.find_all()

        by_guest: Dict[UUID, List[Reservation]] = defaultdict(list)
        for reservation in reservations:
            by_guest[reservation.guest_id].append(reservation)

        frequent = []
        for guest_id, group in by_guest.items():
            guest = guests.get(guest_id)
            frequent.append(FrequentGuest(
                guest_id=guest_id,
                full_name=guest.full_name if guest else "Unknown guest",
                email=guest.email if guest else None,
                reservation_count=len(group),
                total_spent=round_money(sum((r.total_amount for r in group), ZERO)),
                last_reservation_date=max(r.created_at for r in group)
            ))
        frequent.sort(key=lambda g: (-g.reservation_count, g.guest_id))

        status_counts: Dict[ReservationStatus, int] = defaultdict(int)
        for reservation in reservations:
            status_counts[reservation.status] += 1

        breakdown = [
            StatusBreakdown(status=status, count=count, percentage=percentage(count, len(reservations)))
            for status, count in status_counts.items()
        ]
        breakdown.sort(key=lambda s: (-s.count, s.status.value))

        return Result.ok(GuestReport(
            total_guests=len(guests),
            guests_with_reservations=len(by_guest),
            frequent_guests=frequent[:limit],
            status_breakdown=breakdown
        ))

    async def dashboard(self) -> Result[DashboardReport]:
        """Headline figures for the current month"""
        start_date, end_date = month_bounds(self.clock.today())

        occupancy = (await self.occupancy_report(start_date, end_date)).unwrap()
        financial = (await self.financial_report(start_date, end_date)).unwrap()
        guests = (await self.guest_report()).unwrap()

        return Result.ok(DashboardReport(
            period_start=start_date,
            period_end=end_date,
            occupancy_pct=occupancy.occupancy_pct,
            occupied_rooms=occupancy.occupied_rooms,
            available_rooms=occupancy.available_rooms,
            total_rooms=occupancy.total_rooms,
            revenue_total=financial.revenue_total,
            revenue_from_rooms=financial.revenue_from_rooms,
            revenue_from_services=financial.revenue_from_services,
            total_reservations=financial.total_reservations,
            avg_revenue_per_reservation=financial.avg_revenue_per_reservation,
            total_guests=guests.total_guests,
            guests_with_reservations=guests.guests_with_reservations,
            top_guests=guests.frequent_guests[:config.DASHBOARD_TOP_GUESTS],
            status_breakdown=guests.status_breakdown
        ))
