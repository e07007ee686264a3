"""In-Memory Repository Implementations"""
import asyncio
import logging
from typing import Any, Dict, List, NamedTuple, Optional
from uuid import UUID
from datetime import date

from domain.repositories import (
    RoomRepository, RoomTypeRepository, GuestRepository, ReservationRepository,
    PaymentRepository, ServiceConsumptionRepository, UnitOfWork
)
from domain.entities import (
    Reservation, ReservationDetails, Room, RoomType, Guest, Payment, ServiceConsumption
)
from domain.errors import DomainError

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


class InMemoryDatabase:
    """Committed state shared by every unit of work"""

    def __init__(self):
        self.tables: Dict[str, Dict[UUID, Any]] = {
            "rooms": {},
            "room_types": {},
            "guests": {},
            "reservations": {},
            "payments": {},
            "consumptions": {},
        }
        self._room_locks: Dict[UUID, asyncio.Lock] = {}

    def room_lock(self, room_id: UUID) -> asyncio.Lock:
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[room_id] = lock
        return lock


class _StagedWrite(NamedTuple):
    table: str
    op: str
    key: UUID
    entity: Optional[Any]
    expected_version: Optional[int]


class _InMemoryRepository:
    """Reads committed rows (as copies), stages writes on the unit of work"""

    table: str = ""

    def __init__(self, uow: "InMemoryUnitOfWork"):
        self._uow = uow

    @property
    def _rows(self) -> Dict[UUID, Any]:
        return self._uow.database.tables[self.table]

    def _copy(self, entity):
        return entity.model_copy(deep=True) if entity is not None else None

    def _get(self, key: UUID):
        return self._copy(self._rows.get(key))

    def _all(self) -> List[Any]:
        return [self._copy(e) for e in self._rows.values()]

    def _stage_insert(self, key: UUID, entity) -> None:
        self._uow.stage(_StagedWrite(self.table, INSERT, key, self._copy(entity), None))

    def _stage_update(self, key: UUID, entity) -> None:
        expected_version = None
        if hasattr(entity, "version"):
            expected_version = entity.version
            entity.version += 1
        self._uow.stage(_StagedWrite(self.table, UPDATE, key, self._copy(entity), expected_version))

    def _stage_delete(self, key: UUID) -> None:
        self._uow.stage(_StagedWrite(self.table, DELETE, key, None, None))


class InMemoryRoomRepository(_InMemoryRepository, RoomRepository):
    """In-memory implementation of RoomRepository"""

    table = "rooms"

    async def save(self, room: Room) -> Room:
        self._stage_insert(room.room_id, room)
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        return self._get(room_id)

    async def find_by_number(self, number: str) -> Optional[Room]:
        for room in self._rows.values():
            if room.number == number:
                return self._copy(room)
        return None

    async def find_all(self, active_only: bool = False) -> List[Room]:
        return [r for r in self._all() if r.active or not active_only]

    async def update(self, room: Room) -> Room:
        self._stage_update(room.room_id, room)
        return room


class InMemoryRoomTypeRepository(_InMemoryRepository, RoomTypeRepository):
    """In-memory implementation of RoomTypeRepository"""

    table = "room_types"

    async def save(self, room_type: RoomType) -> RoomType:
        self._stage_insert(room_type.room_type_id, room_type)
        return room_type

    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        return self._get(room_type_id)

    async def find_all(self, active_only: bool = False) -> List[RoomType]:
        return [t for t in self._all() if t.active or not active_only]


class InMemoryGuestRepository(_InMemoryRepository, GuestRepository):
    """In-memory implementation of GuestRepository"""

    table = "guests"

    async def save(self, guest: Guest) -> Guest:
        self._stage_insert(guest.guest_id, guest)
        return guest

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        return self._get(guest_id)

    async def find_all(self) -> List[Guest]:
        return self._all()


class InMemoryReservationRepository(_InMemoryRepository, ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    table = "reservations"

    async def save(self, reservation: Reservation) -> Reservation:
        """Stage reservation insert"""
        self._stage_insert(reservation.reservation_id, reservation)
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._get(reservation_id)

    async def find_by_code(self, code: str) -> Optional[Reservation]:
        """Find reservation by reservation code"""
        for reservation in self._rows.values():
            if reservation.reservation_code == code:
                return self._copy(reservation)
        return None

    async def find_by_room_id(self, room_id: UUID) -> List[Reservation]:
        """Find reservations by room ID"""
        return [self._copy(r) for r in self._rows.values() if r.room_id == room_id]

    async def find_in_date_range(self, start: date, end: date) -> List[Reservation]:
        """Find reservations touching the inclusive range"""
        return [
            self._copy(r) for r in self._rows.values()
            if r.check_in <= end and r.check_out >= start
        ]

    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        return self._all()

    async def update(self, reservation: Reservation) -> Reservation:
        """Stage reservation update"""
        if reservation.reservation_id not in self._rows:
            raise DomainError.not_found("Reservation")
        self._stage_update(reservation.reservation_id, reservation)
        return reservation

    async def delete(self, reservation_id: UUID) -> bool:
        """Stage reservation delete"""
        if reservation_id in self._rows:
            self._stage_delete(reservation_id)
            return True
        return False


class InMemoryPaymentRepository(_InMemoryRepository, PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    table = "payments"

    async def save(self, payment: Payment) -> Payment:
        self._stage_insert(payment.payment_id, payment)
        return payment

    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        return [self._copy(p) for p in self._rows.values() if p.reservation_id == reservation_id]


class InMemoryServiceConsumptionRepository(_InMemoryRepository, ServiceConsumptionRepository):
    """In-memory implementation of ServiceConsumptionRepository"""

    table = "consumptions"

    async def save(self, consumption: ServiceConsumption) -> ServiceConsumption:
        self._stage_insert(consumption.consumption_id, consumption)
        return consumption

    async def find_by_reservation_id(self, reservation_id: UUID) -> List[ServiceConsumption]:
        return [self._copy(c) for c in self._rows.values() if c.reservation_id == reservation_id]

    async def find_all(self) -> List[ServiceConsumption]:
        return self._all()


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over an InMemoryDatabase; create one per operation scope"""

    def __init__(self, database: InMemoryDatabase):
        self.database = database
        self._pending: List[_StagedWrite] = []

        self.rooms = InMemoryRoomRepository(self)
        self.room_types = InMemoryRoomTypeRepository(self)
        self.guests = InMemoryGuestRepository(self)
        self.reservations = InMemoryReservationRepository(self)
        self.payments = InMemoryPaymentRepository(self)
        self.consumptions = InMemoryServiceConsumptionRepository(self)

    def stage(self, write: _StagedWrite) -> None:
        self._pending.append(write)

    def room_lock(self, room_id: UUID) -> asyncio.Lock:
        return self.database.room_lock(room_id)

    async def commit(self) -> None:
        writes, self._pending = self._pending, []
        # Validate everything before touching any table
        for index, write in enumerate(writes):
            self._check(write, writes[:index])
        for write in writes:
            self._apply(write)
        if writes:
            logger.debug("Committed %d write(s)", len(writes))

    async def rollback(self) -> None:
        if self._pending:
            logger.debug("Rolled back %d staged write(s)", len(self._pending))
        self._pending = []

    async def hydrate(self, reservations: List[Reservation]) -> List[ReservationDetails]:
        tables = self.database.tables
        details = []
        for reservation in reservations:
            guest = tables["guests"].get(reservation.guest_id)
            room = tables["rooms"].get(reservation.room_id)
            room_type = tables["room_types"].get(reservation.room_type_id)
            details.append(ReservationDetails(
                reservation=reservation,
                guest=guest.model_copy(deep=True) if guest else None,
                room=room.model_copy(deep=True) if room else None,
                room_type=room_type.model_copy(deep=True) if room_type else None,
            ))
        return details

    # ==================== COMMIT HELPERS ====================
    def _check(self, write: _StagedWrite, earlier: List[_StagedWrite]) -> None:
        rows = self.database.tables[write.table]

        if write.op == INSERT:
            if write.key in rows:
                raise DomainError.conflict(f"Record {write.key} already exists", "DUPLICATE_ID")
            if write.table == "reservations":
                self._check_unique(write, earlier, "reservation_code", "DUPLICATE_CODE")
            elif write.table == "rooms":
                self._check_unique(write, earlier, "number", "DUPLICATE_ROOM_NUMBER")
            return

        current = rows.get(write.key)
        if current is None:
            raise DomainError.conflict(
                f"Record {write.key} was removed by another operation", "CONCURRENT_MODIFICATION"
            )
        if write.expected_version is not None and current.version != write.expected_version:
            raise DomainError.conflict(
                f"Record {write.key} was modified by another operation", "CONCURRENT_MODIFICATION"
            )

    def _check_unique(self, write: _StagedWrite, earlier: List[_StagedWrite], field: str, code: str) -> None:
        value = getattr(write.entity, field)
        taken = any(getattr(row, field) == value for row in self.database.tables[write.table].values())
        taken = taken or any(
            w.table == write.table and w.op == INSERT and getattr(w.entity, field) == value
            for w in earlier
        )
        if taken:
            raise DomainError.conflict(f"{field.replace('_', ' ').capitalize()} '{value}' is already in use", code)

    def _apply(self, write: _StagedWrite) -> None:
        rows = self.database.tables[write.table]
        if write.op == DELETE:
            rows.pop(write.key, None)
        else:
            rows[write.key] = write.entity
