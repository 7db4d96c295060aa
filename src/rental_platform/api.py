"""
HTTP-интерфейс платформы на FastAPI.

Доменные исключения переводятся в коды ответа одним обработчиком,
тело ошибки - {"error": ..., "details": ...}.
"""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from .availability.domain import AvailabilitySearch
from .booking.application import BookingDTO
from .bootstrap import Container, bootstrap_app
from .payments.application import PaymentDTO
from .pricing.application import OverrideDTO, RateDTO
from .shared_kernel import (
    AuthenticationError,
    BookingStatus,
    BusinessRuleValidationException,
    ConflictError,
    DomainException,
    EntityId,
    InvalidInputError,
    NotFoundError,
    PaymentStatus,
    UpstreamServiceError,
    get_logger,
    validate_input,
)

STATUS_CODES = (
    (InvalidInputError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (BusinessRuleValidationException, 400),
    (AuthenticationError, 401),
    (UpstreamServiceError, 502),
)

logger = get_logger(__name__)


def status_code_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Создает приложение FastAPI поверх настроенного контейнера."""
    container = container or bootstrap_app()
    app = FastAPI(title=container.settings.app_name, version="0.1.0")
    app.state.container = container

    @app.exception_handler(DomainException)
    def handle_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error("Upstream error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status_code,
            content={"error": str(exc), "details": getattr(exc, "details", None)},
        )

    # Публичные маршруты

    @app.post("/api/bookings", status_code=201, tags=["bookings"])
    def create_booking(payload: Dict[str, Any] = Body(...)):
        result = container.reservations.create_reservation(payload)
        return result.model_dump(mode="json")

    @app.get("/api/availability", tags=["bookings"])
    def availability(
        check_in: date,
        check_out: date,
        property_id: Optional[EntityId] = None,
        room_type_id: Optional[EntityId] = None,
        num_guests: Optional[int] = None,
        summary: bool = False,
    ):
        search = validate_input(
            AvailabilitySearch,
            {
                "check_in": check_in,
                "check_out": check_out,
                "property_id": property_id,
                "room_type_id": room_type_id,
                "num_guests": num_guests,
            },
        )
        if summary:
            return container.availability.summary(search).model_dump(mode="json")
        rooms = container.availability.find_available(search)
        return {
            "rooms": [room.model_dump(mode="json") for room in rooms],
            "total": len(rooms),
        }

    @app.post("/api/webhooks/xendit", tags=["payments"])
    def xendit_webhook(
        payload: Dict[str, Any] = Body(...),
        x_callback_token: Optional[str] = Header(None),
    ):
        ack = container.reconciler.handle_callback(payload, x_callback_token)
        return ack.model_dump()

    # Маршруты ресепшена и администратора

    @app.post("/api/admin/payments", tags=["admin"])
    def record_payment(payload: Dict[str, Any] = Body(...)):
        booking = container.reconciler.record_payment(payload)
        return BookingDTO.from_domain(booking).model_dump(mode="json")

    @app.post("/api/admin/payments/{payment_id}/refund", tags=["admin"])
    def refund_payment(payment_id: EntityId, payload: Optional[Dict[str, Any]] = Body(None)):
        reason = (payload or {}).get("reason")
        payment = container.reconciler.refund_payment(payment_id, reason)
        return PaymentDTO.from_domain(payment).model_dump(mode="json")

    @app.post("/api/admin/bookings/manual", status_code=201, tags=["admin"])
    def create_walk_in(payload: Dict[str, Any] = Body(...)):
        result = container.reservations.create_walk_in(payload)
        return result.model_dump(mode="json")

    @app.get("/api/admin/bookings", tags=["admin"])
    def list_bookings(
        property_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ):
        result = container.bookings.list_bookings(
            property_id=property_id,
            status=status,
            payment_status=payment_status,
            search=search,
            page=page,
            per_page=per_page,
        )
        return result.model_dump(mode="json")

    @app.patch("/api/admin/bookings/{booking_id}", tags=["admin"])
    def update_booking_status(booking_id: EntityId, payload: Dict[str, Any] = Body(...)):
        booking = container.statuses.update_status({**payload, "booking_id": booking_id})
        return BookingDTO.from_domain(booking).model_dump(mode="json")

    @app.get("/api/admin/rates", tags=["admin"])
    def list_rates(property_id: Optional[EntityId] = None):
        rates = container.rate_admin.list_rates(property_id)
        return [RateDTO.from_domain(rate).model_dump(mode="json") for rate in rates]

    @app.put("/api/admin/rates", tags=["admin"])
    def upsert_rate(payload: Dict[str, Any] = Body(...)):
        rate = container.rate_admin.upsert_rate(payload)
        return RateDTO.from_domain(rate).model_dump(mode="json")

    @app.post("/api/admin/rates/bulk", tags=["admin"])
    def bulk_rates(payload: Dict[str, Any] = Body(...)):
        rates = container.rate_admin.bulk_property_rates(payload)
        return [RateDTO.from_domain(rate).model_dump(mode="json") for rate in rates]

    @app.get("/api/admin/overrides", tags=["admin"])
    def list_overrides(property_id: Optional[EntityId] = None):
        overrides = container.rate_admin.list_overrides(property_id)
        return [OverrideDTO.from_domain(o).model_dump(mode="json") for o in overrides]

    @app.put("/api/admin/overrides", tags=["admin"])
    def set_override(payload: Dict[str, Any] = Body(...)):
        override = container.rate_admin.set_room_override(payload)
        return OverrideDTO.from_domain(override).model_dump(mode="json")

    @app.post("/api/admin/overrides/bulk-available", tags=["admin"])
    def bulk_overrides(payload: Dict[str, Any] = Body(...)):
        overrides = container.rate_admin.bulk_override_available_rooms(payload)
        return {
            "count": len(overrides),
            "overrides": [OverrideDTO.from_domain(o).model_dump(mode="json") for o in overrides],
        }

    @app.delete("/api/admin/overrides/{override_id}", tags=["admin"])
    def delete_override(override_id: EntityId):
        container.rate_admin.delete_override(override_id)
        return {"deleted": True}

    return app
