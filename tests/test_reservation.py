"""
Тесты создания бронирований: онлайн, с депозитом, оплата на месте и ресепшен.
"""

import re
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import CHECK_IN, FailingNotifier, RecordingEmailSender, make_request
from rental_platform.booking.application import ReservationOrchestrator
from rental_platform.catalog.domain import Room, RoomType
from rental_platform.notifications.application import NotificationService
from rental_platform.notifications.domain import NotificationType
from rental_platform.payments.domain import PaymentMethod, PaymentRecordStatus
from rental_platform.payments.infrastructure import DummyPaymentGateway
from rental_platform.pricing.domain import RoomRateOverride
from rental_platform.shared_kernel import (
    BookingStatus,
    BusinessRuleValidationException,
    InvalidInputError,
    MinimumStayError,
    NoRateConfiguredError,
    NotFoundError,
    OverpaymentError,
    PaymentMethodType,
    PaymentStatus,
    RoomUnavailableError,
    StayType,
    generate_id,
)


def stored_bookings(uow):
    bookings, _ = uow.bookings.list(limit=100)
    return bookings


class TestOnlineReservation:
    """Бронирование из публичной формы."""

    def test_full_online_payment(self, orchestrator, uow, room, gateway):
        result = orchestrator.create_reservation(make_request(room.id))

        booking = result.booking
        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.UNPAID
        assert booking.stay_type == StayType.DAILY
        assert booking.total_amount == Decimal("1190500")
        assert booking.paid_amount == 0
        assert re.fullmatch(r"BK-\d{8}-[0-9A-F]{6}", booking.booking_code)
        # Код содержит дату оформления, а не дату заезда
        assert booking.booking_code == (
            f"BK-{booking.created_at:%Y%m%d}-{booking.id.hex[:6].upper()}"
        )
        assert not booking.booking_code.startswith(f"BK-{CHECK_IN:%Y%m%d}")
        assert result.pricing.units == 3

        assert result.payment_url.startswith(gateway.base_url)
        [invoice] = gateway.invoices.values()
        assert invoice["external_id"] == f"booking-{booking.id}"
        assert invoice["amount"] == Decimal("1190500")
        assert invoice["payer_email"] == "budi@example.com"
        assert invoice["success_redirect_url"].endswith(f"/booking/{booking.id}/confirmation")

        [payment] = uow.payments.list_for_booking(booking.id)
        assert payment.status == PaymentRecordStatus.PENDING
        assert payment.amount == Decimal("1190500")
        assert payment.gateway_invoice_url == result.payment_url

    def test_deposit_payment(self, orchestrator, uow, room, gateway):
        result = orchestrator.create_reservation(
            make_request(room.id, nights=7, payment_method_type="dp_online")
        )

        booking = result.booking
        assert booking.stay_type == StayType.WEEKLY
        assert booking.total_amount == Decimal("2245000")
        assert booking.deposit_amount == Decimal("1122500")
        [invoice] = gateway.invoices.values()
        assert invoice["external_id"] == f"booking-{booking.id}-dp"
        assert invoice["amount"] == Decimal("1122500")
        assert "sisa bayar di lokasi" in invoice["description"]

    def test_pay_at_property(self, orchestrator, uow, room, gateway):
        result = orchestrator.create_reservation(
            make_request(room.id, payment_method_type="pay_at_property")
        )

        assert result.payment_url is None
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.payment_status == PaymentStatus.UNPAID
        assert gateway.invoices == {}
        [payment] = uow.payments.list_for_booking(result.booking.id)
        assert payment.method == PaymentMethod.CASH
        assert payment.status == PaymentRecordStatus.PENDING
        assert payment.amount == result.booking.total_amount

    def test_gateway_failure_keeps_pending_booking(self, uow, room, notifications):
        orchestrator = ReservationOrchestrator(
            uow, DummyPaymentGateway(fail=True), notifications
        )

        result = orchestrator.create_reservation(make_request(room.id))

        assert result.payment_url is None
        stored = uow.bookings.get_by_id(result.booking.id)
        assert stored.status == BookingStatus.PENDING
        assert uow.payments.list_for_booking(stored.id) == []

    def test_explicit_stay_type(self, orchestrator, room):
        result = orchestrator.create_reservation(
            make_request(room.id, nights=30, stay_type="monthly")
        )

        assert result.booking.stay_type == StayType.MONTHLY
        assert result.booking.total_amount == Decimal("6130000")
        assert result.booking.deposit_amount == Decimal("1839000")

    def test_room_override_price(self, orchestrator, uow, room):
        uow.overrides.upsert(
            RoomRateOverride(room_id=room.id, stay_type=StayType.DAILY, price=Decimal("300000"))
        )

        result = orchestrator.create_reservation(make_request(room.id))

        assert result.booking.total_amount == Decimal("900000")
        assert result.pricing.rate.override_id is not None


class TestReservationRejections:
    """Отказы до любой записи."""

    def test_conflicting_dates(self, orchestrator, uow, room):
        orchestrator.create_reservation(make_request(room.id))

        with pytest.raises(RoomUnavailableError):
            orchestrator.create_reservation(
                make_request(room.id, check_in=CHECK_IN + timedelta(days=2))
            )

        assert len(stored_bookings(uow)) == 1

    def test_next_guest_can_arrive_on_checkout_day(self, orchestrator, uow, room):
        orchestrator.create_reservation(make_request(room.id))
        orchestrator.create_reservation(
            make_request(room.id, check_in=CHECK_IN + timedelta(days=3))
        )

        assert len(stored_bookings(uow)) == 2

    def test_unknown_room(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.create_reservation(make_request(generate_id()))

    def test_no_rate_configured(self, orchestrator, uow, sample_property):
        suite = RoomType(name="Suite", slug="suite", max_guests=4)
        uow.room_types.add(suite)
        room = Room(property_id=sample_property.id, room_type_id=suite.id, room_number="301")
        uow.rooms.add(room)

        with pytest.raises(NoRateConfiguredError):
            orchestrator.create_reservation(make_request(room.id))

        assert stored_bookings(uow) == []

    def test_minimum_stay(self, orchestrator, uow, room):
        with pytest.raises(MinimumStayError):
            orchestrator.create_reservation(make_request(room.id, stay_type="weekly"))

        assert stored_bookings(uow) == []

    def test_capacity(self, orchestrator, uow, room):
        with pytest.raises(BusinessRuleValidationException):
            orchestrator.create_reservation(make_request(room.id, num_guests=3))

        assert stored_bookings(uow) == []

    def test_deposit_payment_without_deposit(self, orchestrator, uow, room, gateway):
        uow.overrides.upsert(
            RoomRateOverride(room_id=room.id, stay_type=StayType.DAILY, price=Decimal("300000"))
        )

        with pytest.raises(BusinessRuleValidationException):
            orchestrator.create_reservation(
                make_request(room.id, payment_method_type="dp_online")
            )

        assert stored_bookings(uow) == []
        assert gateway.invoices == {}

    def test_invalid_dates(self, orchestrator, room):
        request = make_request(room.id)
        request["check_out"] = request["check_in"]

        with pytest.raises(InvalidInputError):
            orchestrator.create_reservation(request)

    def test_invalid_guest_email(self, orchestrator, room):
        request = make_request(room.id)
        request["guest"] = {**request["guest"], "email": "not-an-email"}

        with pytest.raises(InvalidInputError) as exc_info:
            orchestrator.create_reservation(request)

        assert "guest.email" in exc_info.value.details


class TestSideEffects:
    """Гости и уведомления."""

    def test_guest_deduplicated_by_email(self, orchestrator, uow, room):
        first = orchestrator.create_reservation(make_request(room.id))
        request = make_request(room.id, check_in=CHECK_IN + timedelta(days=10))
        request["guest"] = {**request["guest"], "full_name": "Budi S.", "email": "BUDI@example.com"}

        second = orchestrator.create_reservation(request)

        assert second.booking.guest_id == first.booking.guest_id
        assert uow.guests.get_by_id(first.booking.guest_id).full_name == "Budi S."

    def test_new_booking_notifications(self, orchestrator, room, notifier, email_sender):
        result = orchestrator.create_reservation(make_request(room.id))

        [event] = notifier.events
        assert event.type == NotificationType.NEW_BOOKING
        assert event.reference_id == result.booking.id
        assert result.booking.booking_code in event.message

        recipients = {message.to for message in email_sender.messages}
        assert recipients == {"admin@sadaresidence.com", "budi@example.com"}
        confirmation = next(m for m in email_sender.messages if m.to == "budi@example.com")
        assert confirmation.subject.startswith(f"Konfirmasi Booking {result.booking.booking_code}")
        assert "Rp 1.190.500" in confirmation.html

    def test_notification_failures_do_not_fail_reservation(self, uow, room, gateway):
        notifications = NotificationService(
            FailingNotifier(), RecordingEmailSender(fail=True), admin_email="admin@example.com"
        )
        orchestrator = ReservationOrchestrator(uow, gateway, notifications)

        result = orchestrator.create_reservation(make_request(room.id))

        assert uow.bookings.get_by_id(result.booking.id) is not None
        assert result.payment_url is not None


class TestWalkIn:
    """Бронирование на ресепшене."""

    def _walk_in(self, room_id, **overrides):
        request = make_request(room_id, **overrides)
        request["guest"] = {"full_name": "Siti Rahma", "phone": "081234567890"}
        return request

    def test_unpaid_walk_in_is_confirmed(self, orchestrator, uow, room, gateway):
        result = orchestrator.create_walk_in(self._walk_in(room.id))

        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.payment_method_type == PaymentMethodType.PAY_AT_PROPERTY
        assert result.booking.payment_status == PaymentStatus.UNPAID
        assert result.payment_url is None
        assert gateway.invoices == {}
        [payment] = uow.payments.list_for_booking(result.booking.id)
        assert payment.status == PaymentRecordStatus.PENDING

    def test_paid_in_full(self, orchestrator, uow, room, notifier):
        result = orchestrator.create_walk_in(self._walk_in(room.id, is_paid=True))

        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.payment_status == PaymentStatus.PAID
        assert result.booking.paid_amount == Decimal("1190500")
        [payment] = uow.payments.list_for_booking(result.booking.id)
        assert payment.status == PaymentRecordStatus.PAID
        assert payment.method == PaymentMethod.CASH
        assert NotificationType.ONSITE_PAYMENT in {e.type for e in notifier.events}

    def test_partial_prepayment(self, orchestrator, uow, room):
        result = orchestrator.create_walk_in(
            self._walk_in(room.id, paid_amount="500000", paid_method="qris")
        )

        assert result.booking.payment_status == PaymentStatus.PARTIAL
        assert result.booking.paid_amount == Decimal("500000")
        [payment] = uow.payments.list_for_booking(result.booking.id)
        assert payment.method == PaymentMethod.QRIS

    def test_prepayment_above_total(self, orchestrator, uow, room):
        with pytest.raises(OverpaymentError):
            orchestrator.create_walk_in(self._walk_in(room.id, paid_amount="2000000"))

        assert stored_bookings(uow) == []

    def test_guests_without_email_are_separate(self, orchestrator, room, rooms):
        first = orchestrator.create_walk_in(self._walk_in(rooms[0].id))
        second = orchestrator.create_walk_in(self._walk_in(rooms[1].id))

        assert first.booking.guest_id != second.booking.guest_id

    def test_walk_in_respects_availability(self, orchestrator, room):
        orchestrator.create_reservation(make_request(room.id))

        with pytest.raises(RoomUnavailableError):
            orchestrator.create_walk_in(self._walk_in(room.id))
