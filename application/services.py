"""Application Services - Business use cases"""
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from uuid import UUID
from datetime import date
from decimal import Decimal
from typing import List, Optional

from domain.clock import Clock
from domain.repositories import UnitOfWork
from domain.entities import (
    Reservation, ReservationDetails, ReservationPage, Room, RoomType, Guest,
    Payment, ServiceConsumption
)
from domain.enums import ReservationStatus, RoomStatus, PaymentStatus, PaymentMethod
from domain.errors import DomainError
from domain.results import Result
from domain.value_objects import (
    Balance, DateRange, ReservationFilter, format_reservation_code, parse_reservation_code
)
from infrastructure import config

logger = logging.getLogger(__name__)


async def calculate_balance(uow: UnitOfWork, reservation: Reservation) -> Balance:
    """Room total plus consumed services, against completed payments"""
    consumptions = await uow.consumptions.find_by_reservation_id(reservation.reservation_id)
    payments = await uow.payments.find_by_reservation_id(reservation.reservation_id)

    return Balance(
        room_amount=reservation.total_amount,
        services_amount=sum((c.subtotal for c in consumptions), Decimal("0")),
        amount_paid=sum((p.amount for p in payments if p.is_completed()), Decimal("0"))
    )


class _UnitOfWorkService:
    """Shared lookups and failure handling for services working on a unit of work"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def _fail(self, error: DomainError, action: str) -> Result:
        await self.uow.rollback()
        logger.warning("Cannot %s: %s [%s]", action, error.message, error.code)
        return Result.fail(error)

    async def _require_reservation(self, reservation_id: UUID) -> Reservation:
        reservation = await self.uow.reservations.find_by_id(reservation_id)
        if not reservation:
            raise DomainError.not_found("Reservation")
        return reservation

    async def _require_guest(self, guest_id: UUID) -> Guest:
        guest = await self.uow.guests.find_by_id(guest_id)
        if not guest:
            raise DomainError.not_found("Guest")
        return guest

    async def _require_room(self, room_id: UUID) -> Room:
        room = await self.uow.rooms.find_by_id(room_id)
        if not room:
            raise DomainError.not_found("Room")
        return room

    async def _require_room_type(self, room_type_id: UUID) -> RoomType:
        room_type = await self.uow.room_types.find_by_id(room_type_id)
        if not room_type:
            raise DomainError.not_found("Room type")
        return room_type

    @asynccontextmanager
    async def _lock_rooms(self, *room_ids: UUID):
        """Hold the write locks of several rooms, always acquired in the same order"""
        async with AsyncExitStack() as stack:
            for room_id in sorted(set(room_ids), key=str):
                await stack.enter_async_context(self.uow.room_lock(room_id))
            yield


class AvailabilityService:
    """Service for room availability (date-range overlap) queries"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def find_conflicts(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """Reservations still holding the room whose stay overlaps the range"""
        reservations = await self.uow.reservations.find_by_room_id(room_id)
        return [
            r for r in reservations
            if r.reservation_id != exclude_reservation_id
            and r.blocks_room()
            and r.overlaps(date_range)
        ]

    async def has_conflict(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID] = None
    ) -> Result[bool]:
        """Check whether the room is already booked for any night in [check_in, check_out)"""
        try:
            date_range = DateRange.of(check_in, check_out)
        except DomainError as e:
            return Result.fail(e)
        conflicts = await self.find_conflicts(room_id, date_range, exclude_reservation_id)
        return Result.ok(len(conflicts) > 0)

    async def list_available_rooms(
        self,
        check_in: date,
        check_out: date,
        room_type_id: Optional[UUID] = None
    ) -> Result[List[Room]]:
        """Active, currently available rooms with no conflicting booking, ordered by number"""
        try:
            date_range = DateRange.of(check_in, check_out)
        except DomainError as e:
            return Result.fail(e)

        rooms = await self.uow.rooms.find_all(active_only=True)
        available = []
        for room in rooms:
            if not room.is_bookable():
                continue
            if await self.find_conflicts(room.room_id, date_range):
                continue
            if room_type_id is not None and room.room_type_id != room_type_id:
                continue
            available.append(room)

        available.sort(key=lambda r: (len(r.number), r.number))
        return Result.ok(available)


class ReservationService(_UnitOfWorkService):
    """Service for Reservation business use cases"""

    def __init__(self,
                 uow: UnitOfWork,
                 clock: Clock,
                 availability: Optional[AvailabilityService] = None):
        super().__init__(uow)
        self.clock = clock
        self.availability = availability or AvailabilityService(uow)

    async def _next_reservation_code(self) -> str:
        """RES-YYYY-NNNN with the next free sequence number of the current year"""
        year = self.clock.today().year
        sequences = [0]
        for reservation in await self.uow.reservations.find_all():
            try:
                code_year, sequence = parse_reservation_code(reservation.reservation_code)
            except DomainError:
                continue
            if code_year == year:
                sequences.append(sequence)

        next_sequence = max(sequences) + 1
        if next_sequence > 9999:
            raise DomainError.conflict(
                f"Reservation codes for {year} are exhausted", "CODE_SEQUENCE_EXHAUSTED"
            )
        return format_reservation_code(year, next_sequence)

    async def _resolve_code(self, reservation_code: Optional[str]) -> str:
        if reservation_code is None:
            return await self._next_reservation_code()

        parse_reservation_code(reservation_code)
        if await self.uow.reservations.find_by_code(reservation_code):
            raise DomainError.conflict(
                f"Reservation code {reservation_code} is already in use", "DUPLICATE_CODE"
            )
        return reservation_code

    async def _ensure_no_conflict(
        self,
        room: Room,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None
    ) -> None:
        conflict = await self.availability.has_conflict(
            room.room_id, date_range.check_in, date_range.check_out, exclude_reservation_id
        )
        if conflict.unwrap():
            raise DomainError.conflict(
                f"Room {room.number} already has a reservation between "
                f"{date_range.check_in.isoformat()} and {date_range.check_out.isoformat()}",
                "DATE_CONFLICT"
            )

    @staticmethod
    def _log_advisory(reservation: Reservation, nights: Optional[int], total_amount: Optional[Decimal]) -> None:
        if nights is not None and nights != reservation.nights:
            logger.info(
                "Reservation %s: supplied nights %s replaced by %s",
                reservation.reservation_code, nights, reservation.nights
            )
        if total_amount is not None and total_amount != reservation.total_amount:
            logger.info(
                "Reservation %s: supplied total %s replaced by %s",
                reservation.reservation_code, total_amount, reservation.total_amount
            )

    async def create_reservation(
        self,
        guest_id: UUID,
        room_id: UUID,
        check_in: date,
        check_out: date,
        status: ReservationStatus = ReservationStatus.PENDING,
        notes: Optional[str] = None,
        reservation_code: Optional[str] = None,
        nights: Optional[int] = None,
        total_amount: Optional[Decimal] = None
    ) -> Result[Reservation]:
        """Create new reservation.

        ``nights`` and ``total_amount`` are advisory: both are always recomputed
        from the dates and the room type's nightly price.
        """
        try:
            date_range = DateRange.of(check_in, check_out)

            async with self._lock_rooms(room_id):
                await self._require_guest(guest_id)
                room = await self._require_room(room_id)
                room.ensure_available()
                await self._ensure_no_conflict(room, date_range)

                room_type = await self._require_room_type(room.room_type_id)
                code = await self._resolve_code(reservation_code)

                reservation = Reservation.create(
                    reservation_code=code,
                    guest_id=guest_id,
                    room=room,
                    room_type=room_type,
                    date_range=date_range,
                    created_at=self.clock.now(),
                    status=status,
                    notes=notes
                )
                self._log_advisory(reservation, nights, total_amount)

                await self.uow.reservations.save(reservation)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "create reservation")

        logger.info(
            "Reservation %s created for room %s (%s -> %s, %d nights, total %s)",
            reservation.reservation_code, room.number, check_in, check_out,
            reservation.nights, reservation.total_amount
        )
        return Result.ok(reservation)

    async def get_reservation(self, reservation_id: UUID) -> Result[ReservationDetails]:
        """Get reservation by ID, joined with guest and room"""
        try:
            reservation = await self._require_reservation(reservation_id)
        except DomainError as e:
            return Result.fail(e)
        details = await self.uow.hydrate([reservation])
        return Result.ok(details[0])

    async def get_reservation_by_code(self, code: str) -> Result[ReservationDetails]:
        """Get reservation by reservation code"""
        reservation = await self.uow.reservations.find_by_code(code)
        if not reservation:
            return Result.fail(DomainError.not_found("Reservation"))
        details = await self.uow.hydrate([reservation])
        return Result.ok(details[0])

    async def list_reservations(self, filters: Optional[ReservationFilter] = None) -> Result[ReservationPage]:
        """Filtered, paged listing ordered by check-in date then code"""
        filters = filters or ReservationFilter(page_size=config.DEFAULT_PAGE_SIZE)
        if filters.page_size > config.MAX_PAGE_SIZE:
            return Result.fail(DomainError.validation(
                f"Page size must not exceed {config.MAX_PAGE_SIZE}", "INVALID_PAGE_SIZE"
            ))

        reservations = [r for r in await self.uow.reservations.find_all() if filters.matches(r)]
        reservations.sort(key=lambda r: (r.check_in, r.reservation_code))

        start = (filters.page - 1) * filters.page_size
        page_items = reservations[start:start + filters.page_size]

        return Result.ok(ReservationPage(
            items=await self.uow.hydrate(page_items),
            total_count=len(reservations),
            page=filters.page,
            page_size=filters.page_size
        ))

    async def update_reservation(
        self,
        reservation_id: UUID,
        guest_id: UUID,
        room_id: UUID,
        check_in: date,
        check_out: date,
        status: Optional[ReservationStatus] = None,
        notes: Optional[str] = None,
        nights: Optional[int] = None,
        total_amount: Optional[Decimal] = None
    ) -> Result[Reservation]:
        """Replace the mutable fields of a reservation that is not finalized"""
        try:
            existing = await self._require_reservation(reservation_id)

            async with self._lock_rooms(existing.room_id, room_id):
                reservation = await self._require_reservation(reservation_id)
                reservation.ensure_modifiable()

                date_range = DateRange.of(check_in, check_out)
                await self._require_guest(guest_id)
                room = await self._require_room(room_id)
                room_type = await self._require_room_type(room.room_type_id)
                await self._ensure_no_conflict(room, date_range, reservation.reservation_id)

                now = self.clock.now()
                reservation.reschedule(room, room_type, date_range, now)
                reservation.guest_id = guest_id
                reservation.notes = notes
                self._log_advisory(reservation, nights, total_amount)

                if status is not None and status != reservation.status:
                    if status == ReservationStatus.CONFIRMED:
                        reservation.confirm(now)
                    elif status == ReservationStatus.CANCELLED:
                        reservation.cancel(now)
                    else:
                        raise DomainError.invalid_state(
                            f"Status {status.value} can only be reached through check-in or check-out",
                            "INVALID_TRANSITION"
                        )

                await self.uow.reservations.update(reservation)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "update reservation")

        logger.info("Reservation %s updated", reservation.reservation_code)
        return Result.ok(reservation)

    async def confirm_reservation(self, reservation_id: UUID) -> Result[Reservation]:
        """Pending -> Confirmed"""
        return await self._transition(reservation_id, "confirm", lambda r, now: r.confirm(now))

    async def cancel_reservation(self, reservation_id: UUID) -> Result[Reservation]:
        """Pending | Confirmed -> Cancelled"""
        return await self._transition(reservation_id, "cancel", lambda r, now: r.cancel(now))

    async def _transition(self, reservation_id: UUID, action: str, apply) -> Result[Reservation]:
        try:
            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                apply(reservation, self.clock.now())
                await self.uow.reservations.update(reservation)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, f"{action} reservation")

        logger.info("Reservation %s is now %s", reservation.reservation_code, reservation.status.value)
        return Result.ok(reservation)

    async def delete_reservation(self, reservation_id: UUID) -> Result[bool]:
        """Delete reservation unless a guest is currently staying"""
        try:
            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                reservation.ensure_deletable()
                await self.uow.reservations.delete(reservation_id)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "delete reservation")

        logger.info("Reservation %s deleted", reservation.reservation_code)
        return Result.ok(True)


class CheckInOutService(_UnitOfWorkService):
    """Service for check-in / check-out, tying reservation state to room state"""

    def __init__(self,
                 uow: UnitOfWork,
                 clock: Clock,
                 availability: Optional[AvailabilityService] = None):
        super().__init__(uow)
        self.clock = clock
        self.availability = availability or AvailabilityService(uow)

    async def check_in(self, reservation_id: UUID) -> Result[Reservation]:
        """Confirmed -> In progress; room Available -> Occupied"""
        try:
            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                reservation.start_stay(self.clock.today(), self.clock.now())

                room = await self._require_room(reservation.room_id)
                room.occupy()

                await self.uow.rooms.update(room)
                await self.uow.reservations.update(reservation)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "check in")

        logger.info("Check-in done for %s, room %s occupied", reservation.reservation_code, room.number)
        return Result.ok(reservation)

    async def check_out(self, reservation_id: UUID) -> Result[Reservation]:
        """In progress -> Completed once fully paid; room -> Cleaning when it still exists"""
        try:
            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                reservation.ensure_in_progress()

                balance = await calculate_balance(self.uow, reservation)
                if not balance.is_settled():
                    raise DomainError.invalid_state(
                        f"Pending payment. Total: {balance.amount_due}, Paid: {balance.amount_paid}",
                        "PENDING_PAYMENT"
                    )

                reservation.complete_stay(self.clock.now())

                room = await self.uow.rooms.find_by_id(reservation.room_id)
                if room is not None:
                    room.release_for_cleaning()
                    await self.uow.rooms.update(room)
                else:
                    logger.warning(
                        "Room %s of reservation %s not found; room status left untouched",
                        reservation.room_id, reservation.reservation_code
                    )

                await self.uow.reservations.update(reservation)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "check out")

        logger.info("Check-out done for %s", reservation.reservation_code)
        return Result.ok(reservation)

    async def list_active_reservations(self) -> Result[List[Reservation]]:
        """Confirmed and in-progress reservations"""
        reservations = [r for r in await self.uow.reservations.find_all() if r.is_active()]
        reservations.sort(key=lambda r: (r.check_in, r.reservation_code))
        return Result.ok(reservations)

    async def list_available_rooms(self, check_in: date, check_out: date) -> Result[List[Room]]:
        """Rooms free for the whole range, any room type"""
        return await self.availability.list_available_rooms(check_in, check_out)


class BillingService(_UnitOfWorkService):
    """Service for recording payments and service consumption"""

    def __init__(self, uow: UnitOfWork, clock: Clock):
        super().__init__(uow)
        self.clock = clock

    async def record_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        status: PaymentStatus = PaymentStatus.PENDING,
        reference: Optional[str] = None
    ) -> Result[Payment]:
        """Record a payment already processed elsewhere"""
        try:
            if amount <= 0:
                raise DomainError.validation("Payment amount must be greater than 0", "INVALID_AMOUNT")

            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                if reservation.status == ReservationStatus.CANCELLED:
                    raise DomainError.invalid_state(
                        "Cannot record payments on a cancelled reservation", "RESERVATION_CANCELLED"
                    )

                payment = Payment(
                    reservation_id=reservation_id,
                    amount=amount,
                    payment_date=self.clock.now(),
                    method=method,
                    status=status,
                    reference=reference
                )
                await self.uow.payments.save(payment)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "record payment")

        logger.info("Payment of %s (%s) recorded for %s", amount, status.value, reservation.reservation_code)
        return Result.ok(payment)

    async def add_service_consumption(
        self,
        reservation_id: UUID,
        service_id: UUID,
        quantity: int,
        unit_price: Decimal
    ) -> Result[ServiceConsumption]:
        """Charge an additional service to an open reservation"""
        try:
            if quantity < 1:
                raise DomainError.validation("Quantity must be at least 1", "INVALID_QUANTITY")
            if unit_price < 0:
                raise DomainError.validation("Unit price must not be negative", "INVALID_AMOUNT")

            existing = await self._require_reservation(reservation_id)
            async with self._lock_rooms(existing.room_id):
                reservation = await self._require_reservation(reservation_id)
                reservation.ensure_modifiable()

                consumption = ServiceConsumption.record(
                    reservation_id=reservation_id,
                    service_id=service_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    consumed_at=self.clock.now()
                )
                await self.uow.consumptions.save(consumption)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "add service consumption")

        return Result.ok(consumption)

    async def get_balance(self, reservation_id: UUID) -> Result[Balance]:
        try:
            reservation = await self._require_reservation(reservation_id)
        except DomainError as e:
            return Result.fail(e)
        return Result.ok(await calculate_balance(self.uow, reservation))


class InventoryService(_UnitOfWorkService):
    """Service for the room / room type / guest data the engine reads"""

    async def create_room_type(
        self,
        name: str,
        capacity: int,
        nightly_price: Decimal,
        description: Optional[str] = None
    ) -> Result[RoomType]:
        try:
            if capacity < 1:
                raise DomainError.validation("Capacity must be at least 1", "INVALID_CAPACITY")
            if nightly_price < 0:
                raise DomainError.validation("Nightly price must not be negative", "INVALID_AMOUNT")

            room_type = RoomType(
                name=name, capacity=capacity, nightly_price=nightly_price, description=description
            )
            await self.uow.room_types.save(room_type)
            await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "create room type")
        return Result.ok(room_type)

    async def create_room(
        self,
        number: str,
        floor: int,
        room_type_id: UUID,
        status: RoomStatus = RoomStatus.AVAILABLE,
        description: Optional[str] = None
    ) -> Result[Room]:
        try:
            await self._require_room_type(room_type_id)
            if await self.uow.rooms.find_by_number(number):
                raise DomainError.conflict(f"Room number {number} already exists", "DUPLICATE_ROOM_NUMBER")

            room = Room(
                number=number, floor=floor, room_type_id=room_type_id,
                status=status, description=description
            )
            await self.uow.rooms.save(room)
            await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "create room")
        return Result.ok(room)

    async def register_guest(
        self,
        first_name: str,
        last_name: str,
        document_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        document_type: str = "ID"
    ) -> Result[Guest]:
        guest = Guest(
            first_name=first_name, last_name=last_name, document_id=document_id,
            email=email, phone=phone, document_type=document_type
        )
        try:
            await self.uow.guests.save(guest)
            await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "register guest")
        return Result.ok(guest)

    async def get_room(self, room_id: UUID) -> Result[Room]:
        try:
            return Result.ok(await self._require_room(room_id))
        except DomainError as e:
            return Result.fail(e)

    async def list_rooms(self, active_only: bool = False) -> Result[List[Room]]:
        rooms = await self.uow.rooms.find_all(active_only=active_only)
        rooms.sort(key=lambda r: (len(r.number), r.number))
        return Result.ok(rooms)

    async def list_room_types(self, active_only: bool = False) -> Result[List[RoomType]]:
        room_types = await self.uow.room_types.find_all(active_only=active_only)
        return Result.ok(sorted(room_types, key=lambda t: t.name))

    async def get_guest(self, guest_id: UUID) -> Result[Guest]:
        try:
            return Result.ok(await self._require_guest(guest_id))
        except DomainError as e:
            return Result.fail(e)

    async def change_room_status(self, room_id: UUID, status: RoomStatus) -> Result[Room]:
        """Housekeeping / maintenance status change"""
        try:
            async with self._lock_rooms(room_id):
                room = await self._require_room(room_id)
                room.change_status(status)
                await self.uow.rooms.update(room)
                await self.uow.commit()
        except DomainError as e:
            return await self._fail(e, "change room status")

        logger.info("Room %s is now %s", room.number, status.value)
        return Result.ok(room)
