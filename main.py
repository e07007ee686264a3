import logging
from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from uuid import UUID
from datetime import date, datetime, timezone
from typing import List, Optional

from api.schemas import (
    # Inventory
    CreateRoomTypeRequest, RoomTypeResponse, CreateRoomRequest, ChangeRoomStatusRequest,
    RoomResponse, RegisterGuestRequest, GuestResponse,
    # Reservation
    CreateReservationRequest, UpdateReservationRequest, ReservationResponse,
    PagedReservationResponse, PaginationMetadata,
    # Billing
    RecordPaymentRequest, PaymentResponse, AddConsumptionRequest, ConsumptionResponse,
    BalanceResponse,
    # Errors
    ErrorResponse
)

from application.services import (
    ReservationService, AvailabilityService, CheckInOutService, BillingService, InventoryService
)
from application.reports import (
    ReportService, OccupancyReport, FinancialReport, GuestReport, DashboardReport
)
from infrastructure import config
from infrastructure.clock import SystemClock
from infrastructure.logging_config import configure_logging
from infrastructure.repositories.in_memory_repositories import InMemoryDatabase, InMemoryUnitOfWork
from domain.clock import Clock
from domain.entities import Reservation, ReservationDetails, Room, Guest
from domain.enums import ReservationStatus, RoomStatus, PaymentMethod, PaymentStatus
from domain.errors import DomainError, ErrorKind
from domain.repositories import UnitOfWork
from domain.value_objects import ReservationFilter

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=config.APP_TITLE,
    description="Hotel reservation lifecycle, availability, check-in/check-out and reporting",
    version=config.APP_VERSION
)

# Shared storage and time source
database = InMemoryDatabase()
system_clock = SystemClock()

# Dependency injection
def get_database() -> InMemoryDatabase:
    return database

def get_clock() -> Clock:
    return system_clock

def get_unit_of_work(db: InMemoryDatabase = Depends(get_database)) -> UnitOfWork:
    return InMemoryUnitOfWork(db)

def get_reservation_service(
    uow: UnitOfWork = Depends(get_unit_of_work), clock: Clock = Depends(get_clock)
) -> ReservationService:
    return ReservationService(uow, clock)

def get_availability_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> AvailabilityService:
    return AvailabilityService(uow)

def get_check_in_out_service(
    uow: UnitOfWork = Depends(get_unit_of_work), clock: Clock = Depends(get_clock)
) -> CheckInOutService:
    return CheckInOutService(uow, clock)

def get_billing_service(
    uow: UnitOfWork = Depends(get_unit_of_work), clock: Clock = Depends(get_clock)
) -> BillingService:
    return BillingService(uow, clock)

def get_inventory_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> InventoryService:
    return InventoryService(uow)

def get_report_service(
    uow: UnitOfWork = Depends(get_unit_of_work), clock: Clock = Depends(get_clock)
) -> ReportService:
    return ReportService(uow, clock)

# ============================================================================
# ERROR HANDLING
# ============================================================================

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.VALIDATION_ERROR: 400,
}

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map typed engine failures to HTTP status codes"""
    body = ErrorResponse(
        type=exc.kind.value,
        message=exc.message,
        error_code=exc.code,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path
    )
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=body.model_dump(mode="json"))

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.value for item in ReservationStatus],
        "description": "Reservation status values: PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED"
    }

@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    """Get all RoomStatus enum values"""
    return {
        "values": [item.value for item in RoomStatus],
        "description": "Room status values: AVAILABLE, OCCUPIED, CLEANING, OUT_OF_SERVICE"
    }

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    """Get all PaymentMethod and PaymentStatus enum values"""
    return {
        "methods": [item.value for item in PaymentMethod],
        "statuses": [item.value for item in PaymentStatus]
    }

# ============================================================================
# INVENTORY ENDPOINTS
# ============================================================================

@app.post("/api/room-types", response_model=RoomTypeResponse, status_code=201, tags=["Inventory"])
async def create_room_type(
    request: CreateRoomTypeRequest,
    service: InventoryService = Depends(get_inventory_service)
):
    """Create a room type"""
    room_type = (await service.create_room_type(
        name=request.name,
        capacity=request.capacity,
        nightly_price=request.nightly_price,
        description=request.description
    )).unwrap()
    return RoomTypeResponse(**room_type.model_dump())

@app.get("/api/room-types", response_model=List[RoomTypeResponse], tags=["Inventory"])
async def list_room_types(service: InventoryService = Depends(get_inventory_service)):
    """List room types"""
    room_types = (await service.list_room_types()).unwrap()
    return [RoomTypeResponse(**t.model_dump()) for t in room_types]

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Inventory"])
async def create_room(
    request: CreateRoomRequest,
    service: InventoryService = Depends(get_inventory_service)
):
    """Create a room"""
    room = (await service.create_room(
        number=request.number,
        floor=request.floor,
        room_type_id=request.room_type_id,
        status=request.status,
        description=request.description
    )).unwrap()
    return _room_to_response(room)

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Inventory"])
async def list_rooms(
    active_only: bool = False,
    service: InventoryService = Depends(get_inventory_service)
):
    """List rooms ordered by number"""
    rooms = (await service.list_rooms(active_only=active_only)).unwrap()
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Inventory"])
async def get_room(room_id: UUID, service: InventoryService = Depends(get_inventory_service)):
    """Get room by ID"""
    return _room_to_response((await service.get_room(room_id)).unwrap())

@app.put("/api/rooms/{room_id}/status", response_model=RoomResponse, tags=["Inventory"])
async def change_room_status(
    room_id: UUID,
    request: ChangeRoomStatusRequest,
    service: InventoryService = Depends(get_inventory_service)
):
    """Housekeeping / maintenance status change"""
    room = (await service.change_room_status(room_id, request.status)).unwrap()
    return _room_to_response(room)

@app.post("/api/guests", response_model=GuestResponse, status_code=201, tags=["Inventory"])
async def register_guest(
    request: RegisterGuestRequest,
    service: InventoryService = Depends(get_inventory_service)
):
    """Register a guest"""
    guest = (await service.register_guest(
        first_name=request.first_name,
        last_name=request.last_name,
        document_id=request.document_id,
        email=request.email,
        phone=request.phone,
        document_type=request.document_type
    )).unwrap()
    return _guest_to_response(guest)

@app.get("/api/guests/{guest_id}", response_model=GuestResponse, tags=["Inventory"])
async def get_guest(guest_id: UUID, service: InventoryService = Depends(get_inventory_service)):
    """Get guest by ID"""
    return _guest_to_response((await service.get_guest(guest_id)).unwrap())

# ============================================================================
# AVAILABILITY ENDPOINTS
# ============================================================================

@app.get("/api/availability/rooms", response_model=List[RoomResponse], tags=["Availability"])
async def list_available_rooms(
    check_in: date,
    check_out: date,
    room_type_id: Optional[UUID] = None,
    service: AvailabilityService = Depends(get_availability_service)
):
    """Rooms free for [check_in, check_out), optionally of one room type"""
    rooms = (await service.list_available_rooms(check_in, check_out, room_type_id)).unwrap()
    return [_room_to_response(r) for r in rooms]

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Create new reservation"""
    reservation = (await service.create_reservation(
        guest_id=request.guest_id,
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        status=request.status,
        notes=request.notes,
        reservation_code=request.reservation_code,
        nights=request.nights,
        total_amount=request.total_amount
    )).unwrap()
    return _reservation_to_response(reservation)

@app.get("/api/reservations", response_model=PagedReservationResponse, tags=["Reservations"])
async def list_reservations(
    status: Optional[ReservationStatus] = None,
    guest_id: Optional[UUID] = None,
    check_in_from: Optional[date] = None,
    check_out_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(config.DEFAULT_PAGE_SIZE, ge=1),
    service: ReservationService = Depends(get_reservation_service)
):
    """List reservations with filters and pagination"""
    filters = ReservationFilter(
        status=status,
        guest_id=guest_id,
        check_in_from=check_in_from,
        check_out_to=check_out_to,
        page=page,
        page_size=page_size
    )
    result = (await service.list_reservations(filters)).unwrap()
    return PagedReservationResponse(
        message=f"Found {result.total_count} reservation(s)",
        data=[_details_to_response(d) for d in result.items],
        pagination=PaginationMetadata(
            page=result.page,
            page_size=result.page_size,
            total_records=result.total_count,
            total_pages=result.total_pages
        )
    )

@app.get("/api/reservations/code/{reservation_code}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation_by_code(
    reservation_code: str,
    service: ReservationService = Depends(get_reservation_service)
):
    """Get reservation by reservation code"""
    details = (await service.get_reservation_by_code(reservation_code)).unwrap()
    return _details_to_response(details)

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service)
):
    """Get reservation by ID"""
    details = (await service.get_reservation(reservation_id)).unwrap()
    return _details_to_response(details)

@app.put("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def update_reservation(
    reservation_id: UUID,
    request: UpdateReservationRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Replace reservation details"""
    reservation = (await service.update_reservation(
        reservation_id=reservation_id,
        guest_id=request.guest_id,
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        status=request.status,
        notes=request.notes,
        nights=request.nights,
        total_amount=request.total_amount
    )).unwrap()
    return _reservation_to_response(reservation)

@app.delete("/api/reservations/{reservation_id}", tags=["Reservations"])
async def delete_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service)
):
    """Delete reservation"""
    (await service.delete_reservation(reservation_id)).unwrap()
    return {"success": True, "message": "Reservation deleted"}

@app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
async def confirm_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service)
):
    """Confirm pending reservation"""
    return _reservation_to_response((await service.confirm_reservation(reservation_id)).unwrap())

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service)
):
    """Cancel pending or confirmed reservation"""
    return _reservation_to_response((await service.cancel_reservation(reservation_id)).unwrap())

# ============================================================================
# BILLING ENDPOINTS
# ============================================================================

@app.post("/api/reservations/{reservation_id}/payments", response_model=PaymentResponse, status_code=201, tags=["Billing"])
async def record_payment(
    reservation_id: UUID,
    request: RecordPaymentRequest,
    service: BillingService = Depends(get_billing_service)
):
    """Record a payment for a reservation"""
    payment = (await service.record_payment(
        reservation_id=reservation_id,
        amount=request.amount,
        method=request.method,
        status=request.status,
        reference=request.reference
    )).unwrap()
    return PaymentResponse(
        payment_id=payment.payment_id,
        reservation_id=payment.reservation_id,
        amount=payment.amount,
        payment_date=payment.payment_date,
        method=payment.method.value,
        status=payment.status.value,
        reference=payment.reference
    )

@app.post("/api/reservations/{reservation_id}/consumptions", response_model=ConsumptionResponse, status_code=201, tags=["Billing"])
async def add_service_consumption(
    reservation_id: UUID,
    request: AddConsumptionRequest,
    service: BillingService = Depends(get_billing_service)
):
    """Charge an additional service to a reservation"""
    consumption = (await service.add_service_consumption(
        reservation_id=reservation_id,
        service_id=request.service_id,
        quantity=request.quantity,
        unit_price=request.unit_price
    )).unwrap()
    return ConsumptionResponse(**consumption.model_dump())

@app.get("/api/reservations/{reservation_id}/balance", response_model=BalanceResponse, tags=["Billing"])
async def get_balance(
    reservation_id: UUID,
    service: BillingService = Depends(get_billing_service)
):
    """Amount due against completed payments"""
    balance = (await service.get_balance(reservation_id)).unwrap()
    return BalanceResponse(
        room_amount=balance.room_amount,
        services_amount=balance.services_amount,
        amount_due=balance.amount_due,
        amount_paid=balance.amount_paid,
        outstanding=balance.outstanding,
        settled=balance.is_settled()
    )

# ============================================================================
# CHECK-IN / CHECK-OUT ENDPOINTS
# ============================================================================

@app.post("/api/check-in-out/check-in/{reservation_id}", response_model=ReservationResponse, tags=["Check-In/Out"])
async def check_in(
    reservation_id: UUID,
    service: CheckInOutService = Depends(get_check_in_out_service)
):
    """Check in a confirmed reservation"""
    return _reservation_to_response((await service.check_in(reservation_id)).unwrap())

@app.post("/api/check-in-out/check-out/{reservation_id}", response_model=ReservationResponse, tags=["Check-In/Out"])
async def check_out(
    reservation_id: UUID,
    service: CheckInOutService = Depends(get_check_in_out_service)
):
    """Check out an in-progress, fully paid reservation"""
    return _reservation_to_response((await service.check_out(reservation_id)).unwrap())

@app.get("/api/check-in-out/active", response_model=List[ReservationResponse], tags=["Check-In/Out"])
async def list_active_reservations(service: CheckInOutService = Depends(get_check_in_out_service)):
    """Confirmed and in-progress reservations"""
    reservations = (await service.list_active_reservations()).unwrap()
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/check-in-out/available-rooms", response_model=List[RoomResponse], tags=["Check-In/Out"])
async def list_rooms_for_range(
    check_in: date,
    check_out: date,
    service: CheckInOutService = Depends(get_check_in_out_service)
):
    """Rooms free for the whole range, any room type"""
    rooms = (await service.list_available_rooms(check_in, check_out)).unwrap()
    return [_room_to_response(r) for r in rooms]

# ============================================================================
# REPORT ENDPOINTS
# ============================================================================

@app.get("/api/reports/occupancy", response_model=OccupancyReport, tags=["Reports"])
async def occupancy_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: ReportService = Depends(get_report_service)
):
    """Occupancy for a period (defaults to the current month)"""
    return (await service.occupancy_report(start_date, end_date)).unwrap()

@app.get("/api/reports/financial", response_model=FinancialReport, tags=["Reports"])
async def financial_report(
    start_date: date,
    end_date: date,
    service: ReportService = Depends(get_report_service)
):
    """Revenue of reservations created within the period"""
    return (await service.financial_report(start_date, end_date)).unwrap()

@app.get("/api/reports/guests", response_model=GuestReport, tags=["Reports"])
async def guest_report(service: ReportService = Depends(get_report_service)):
    """Guest statistics"""
    return (await service.guest_report()).unwrap()

@app.get("/api/reports/dashboard", response_model=DashboardReport, tags=["Reports"])
async def dashboard_report(service: ReportService = Depends(get_report_service)):
    """Current-month overview"""
    return (await service.dashboard()).unwrap()

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room: Room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        number=room.number,
        floor=room.floor,
        room_type_id=room.room_type_id,
        status=room.status.value,
        active=room.active,
        description=room.description
    )

def _guest_to_response(guest: Guest) -> GuestResponse:
    """Convert Guest entity to GuestResponse"""
    return GuestResponse(full_name=guest.full_name, **guest.model_dump())

def _reservation_to_response(reservation: Reservation, **joined) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        reservation_code=reservation.reservation_code,
        guest_id=reservation.guest_id,
        room_id=reservation.room_id,
        room_type_id=reservation.room_type_id,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        nights=reservation.nights,
        total_amount=reservation.total_amount,
        status=reservation.status.value,
        notes=reservation.notes,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        actual_check_in=reservation.actual_check_in,
        actual_check_out=reservation.actual_check_out,
        version=reservation.version,
        **joined
    )

def _details_to_response(details: ReservationDetails) -> ReservationResponse:
    """Convert hydrated ReservationDetails to ReservationResponse"""
    return _reservation_to_response(
        details.reservation,
        guest_name=details.guest.full_name if details.guest else None,
        room_number=details.room.number if details.room else None,
        room_type_name=details.room_type.name if details.room_type else None
    )

if __name__ == "__main__":
    import uvicorn
    logger.info("Starting %s v%s", config.APP_TITLE, config.APP_VERSION)
    uvicorn.run(app, host="0.0.0.0", port=8000)
