"""FastAPI server for the salon booking service.

Features:
- Availability and booking endpoints (public, guest booking by phone)
- Admin status changes and schedule exceptions
- Global exception handling (BookingError → status/code)
- Request IDs bound to structured logs
- Health check endpoint
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salon_booking import config as settings
from salon_booking.api.dependencies import get_business_config, get_db, get_now
from salon_booking.api.models import (
    AdminReservationUpdate, AvailabilityResponse, CreateReservationRequest,
    CustomerReservationAction, DateExceptionRequest, DateExceptionResponse,
    ErrorResponse, ReservationEnvelope, ReservationResponse,
    ScheduleOverrideRequest, ScheduleOverrideResponse, SettingsResponse,
    SettingsUpdateRequest, SlotResponse, WeeklyScheduleRequest,
    WeeklyScheduleResponse, WeeklyShiftModel,
)
from salon_booking.availability import get_availability
from salon_booking.booking import BookingRequest, create_booking
from salon_booking.business_config import BusinessConfig
from salon_booking.database import Database, close_database, get_database
from salon_booking.errors import BookingError, BookingValidationError
from salon_booking.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from salon_booking.schedule_admin import (
    WeeklyShift, create_holiday, create_special_open_day, delete_holiday,
    delete_schedule_override, delete_special_open_day, replace_weekly_schedule,
    update_settings, upsert_schedule_override,
)
from salon_booking.status import cancel_reservation, get_reservation, update_reservation_status
from salon_booking.timeutils import parse_date

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    setup_structured_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    logger.info("server_starting", database=settings.DATABASE_URL.split("://")[0])

    # Startup: create the engine and tables
    try:
        get_database()
    except Exception:
        logger.exception("database_initialization_failed")
        raise

    yield

    close_database()
    logger.info("server_stopped")


app = FastAPI(
    title="Salon Booking API",
    description=f"Reservation scheduling and staff assignment for {settings.SALON_INFO['name']}",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


# Global exception handlers
@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render domain errors with their own status and code."""
    logger.info(
        "request_rejected",
        code=exc.code,
        status=exc.status_code,
        reason=getattr(exc, "reason", None),
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            detail=exc.detail,
            code=exc.code,
            reason=getattr(exc, "reason", None),
        ).model_dump(exclude_none=True)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_failed", errors=str(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Validation Error",
            detail=str(exc.errors()),
            code="VALIDATION_ERROR"
        ).model_dump(exclude_none=True)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            detail="An unexpected error occurred. Please try again later.",
            code="INTERNAL_ERROR"
        ).model_dump(exclude_none=True)
    )


def _parse_date_param(value: str):
    try:
        return parse_date(value)
    except ValueError as e:
        raise BookingValidationError("Invalid date", detail=str(e))


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "salon-booking-api",
        "version": "1.0.0"
    }


# ==================== Public ====================

@app.get("/api/availability", tags=["Availability"], response_model=AvailabilityResponse)
def availability(
    date: str = Query(..., description="YYYY-MM-DD"),
    menu_ids: str = Query("", alias="menuIds", description="Comma-separated menu IDs"),
    staff_id: Optional[str] = Query(None, alias="staffId"),
    database: Database = Depends(get_db),
    business_config: BusinessConfig = Depends(get_business_config),
    now: datetime = Depends(get_now),
):
    """
    Bookable start times for a date and a set of menus.

    Advisory only: a slot shown as available can still be taken before
    the booking is submitted.
    """
    target = _parse_date_param(date)
    ids = [m.strip() for m in menu_ids.split(",") if m.strip()]

    with database.read_session() as db:
        result = get_availability(db, business_config, target, ids, now, staff_id=staff_id or None)

    return AvailabilityResponse(
        date=result.date,
        day_of_week=result.day_of_week,
        is_closed=result.is_closed,
        slots=[SlotResponse(time=s.time, available=s.available, staff_id=s.staff_id) for s in result.slots],
        total_duration=result.total_duration,
        total_price=result.total_price,
    )


@app.post(
    "/api/reservations",
    tags=["Reservations"],
    response_model=ReservationEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_reservation(
    request: CreateReservationRequest,
    database: Database = Depends(get_db),
    business_config: BusinessConfig = Depends(get_business_config),
    now: datetime = Depends(get_now),
):
    """
    Create a reservation.

    Returns:
        201 with the reservation

    Raises:
        400: validation error, business rule violation, coupon rejected
        409: no stylist available / slot taken
    """
    reservation = create_booking(
        database,
        business_config,
        BookingRequest(**request.model_dump()),
        now,
    )
    return ReservationEnvelope(
        message="Your reservation is confirmed",
        reservation=ReservationResponse.model_validate(reservation),
    )


@app.get("/api/reservations/{reservation_id}", tags=["Reservations"], response_model=ReservationEnvelope)
def read_reservation(reservation_id: str, database: Database = Depends(get_db)):
    reservation = get_reservation(database, reservation_id)
    return ReservationEnvelope(reservation=ReservationResponse.model_validate(reservation))


@app.patch("/api/reservations/{reservation_id}", tags=["Reservations"], response_model=ReservationEnvelope)
def customer_cancel(
    reservation_id: str,
    request: CustomerReservationAction,
    database: Database = Depends(get_db),
    business_config: BusinessConfig = Depends(get_business_config),
    now: datetime = Depends(get_now),
):
    """Customer cancellation, allowed until the cancellation deadline."""
    reservation = cancel_reservation(database, business_config, reservation_id, now)
    return ReservationEnvelope(
        message="Your reservation has been cancelled",
        reservation=ReservationResponse.model_validate(reservation),
    )


# ==================== Admin ====================

@app.patch("/api/admin/reservations/{reservation_id}", tags=["Admin"], response_model=ReservationEnvelope)
def admin_update_reservation(
    reservation_id: str,
    request: AdminReservationUpdate,
    database: Database = Depends(get_db),
):
    """Change status (CONFIRMED/COMPLETED/CANCELLED/NO_SHOW) and/or the note."""
    reservation = update_reservation_status(
        database, reservation_id, status=request.status, note=request.note
    )
    return ReservationEnvelope(
        message="Reservation updated",
        reservation=ReservationResponse.model_validate(reservation),
    )


@app.put(
    "/api/admin/staff/{staff_id}/schedule-override",
    tags=["Admin"],
    response_model=ScheduleOverrideResponse,
)
def put_schedule_override(
    staff_id: str,
    request: ScheduleOverrideRequest,
    database: Database = Depends(get_db),
):
    override = upsert_schedule_override(
        database, staff_id, request.date, request.start_time, request.end_time
    )
    return ScheduleOverrideResponse.model_validate(override)


@app.delete("/api/admin/staff/{staff_id}/schedule-override", tags=["Admin"])
def remove_schedule_override(
    staff_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    database: Database = Depends(get_db),
):
    delete_schedule_override(database, staff_id, _parse_date_param(date))
    return {"message": "Schedule override removed"}


@app.put("/api/admin/staff/{staff_id}/schedule", tags=["Admin"], response_model=WeeklyScheduleResponse)
def put_weekly_schedule(
    staff_id: str,
    request: WeeklyScheduleRequest,
    database: Database = Depends(get_db),
):
    schedules = replace_weekly_schedule(
        database,
        staff_id,
        [WeeklyShift(s.day_of_week, s.start_time, s.end_time, s.is_active) for s in request.shifts],
    )
    return WeeklyScheduleResponse(
        staff_id=staff_id,
        shifts=[WeeklyShiftModel.model_validate(s) for s in schedules],
    )


@app.post(
    "/api/admin/holidays",
    tags=["Admin"],
    response_model=DateExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_holiday(request: DateExceptionRequest, database: Database = Depends(get_db)):
    holiday = create_holiday(database, request.date, request.start_time, request.end_time, request.reason)
    return DateExceptionResponse.model_validate(holiday)


@app.delete("/api/admin/holidays/{holiday_id}", tags=["Admin"])
def remove_holiday(holiday_id: str, database: Database = Depends(get_db)):
    delete_holiday(database, holiday_id)
    return {"message": "Holiday removed"}


@app.post(
    "/api/admin/special-open-days",
    tags=["Admin"],
    response_model=DateExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_special_open_day(request: DateExceptionRequest, database: Database = Depends(get_db)):
    special = create_special_open_day(
        database, request.date, request.start_time, request.end_time, request.reason
    )
    return DateExceptionResponse.model_validate(special)


@app.delete("/api/admin/special-open-days/{special_open_day_id}", tags=["Admin"])
def remove_special_open_day(special_open_day_id: str, database: Database = Depends(get_db)):
    delete_special_open_day(database, special_open_day_id)
    return {"message": "Special open day removed"}


@app.get("/api/admin/settings", tags=["Admin"], response_model=SettingsResponse)
def read_settings(business_config: BusinessConfig = Depends(get_business_config)):
    return SettingsResponse.model_validate(business_config)


@app.put("/api/admin/settings", tags=["Admin"], response_model=SettingsResponse)
def put_settings(request: SettingsUpdateRequest, database: Database = Depends(get_db)):
    updated = update_settings(
        database,
        closed_days=request.closed_days,
        public_holidays=request.public_holidays,
    )
    return SettingsResponse.model_validate(updated)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "salon_booking.api_server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
