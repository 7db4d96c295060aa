"""
Тесты шаблонов и рассылки уведомлений.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
import requests

from conftest import CHECK_IN, FailingNotifier, FakeResponse, FakeSession, RecordingEmailSender
from rental_platform.booking.domain import Booking, Guest
from rental_platform.catalog.domain import Property, Room, RoomDetails, RoomType
from rental_platform.notifications import templates
from rental_platform.notifications.application import NotificationService
from rental_platform.notifications.domain import (
    EmailMessage,
    NotificationType,
    format_currency,
)
from rental_platform.notifications.infrastructure import (
    HttpEmailSender,
    InMemoryNotifier,
    LoggingEmailSender,
)
from rental_platform.shared_kernel import DateRange, StayType, UpstreamServiceError


@pytest.fixture
def details():
    prop = Property(name="Sada Residence Kemang", slug="kemang")
    room_type = RoomType(name="Deluxe", slug="deluxe")
    room = Room(property_id=prop.id, room_type_id=room_type.id, room_number="204")
    return RoomDetails(room=room, room_type=room_type, property=prop)


@pytest.fixture
def guest():
    return Guest(full_name="Budi Santoso", email="budi@example.com", phone="081234567890")


@pytest.fixture
def booking(details, guest):
    return Booking(
        booking_code="BK-20300304-1A2B3C",
        guest_id=guest.id,
        room_id=details.room.id,
        property_id=details.property.id,
        period=DateRange(check_in=CHECK_IN, check_out=CHECK_IN + timedelta(days=3)),
        stay_type=StayType.DAILY,
        base_price=Decimal("1050000"),
        tax_amount=Decimal("115500"),
        service_fee=Decimal("25000"),
        total_amount=Decimal("1190500"),
    )


class TestFormatting:
    @pytest.mark.parametrize(
        "amount, currency, expected",
        [
            (Decimal("1190500"), "IDR", "Rp 1.190.500"),
            (Decimal("0"), "IDR", "Rp 0"),
            (Decimal("950"), "IDR", "Rp 950"),
            (Decimal("1000"), "USD", "USD 1.000"),
        ],
    )
    def test_format_currency(self, amount, currency, expected):
        assert format_currency(amount, currency) == expected

    def test_format_date(self):
        assert templates.format_date(date(2026, 3, 2)) == "Senin, 2 Maret 2026"
        assert templates.format_date(date(2030, 12, 25)) == "Rabu, 25 Desember 2030"


class TestTemplates:
    def test_booking_confirmation(self, booking, guest, details):
        message = templates.booking_confirmation_email(
            booking, guest, details, "Sada Residence", "https://sada.test"
        )

        assert message.to == "budi@example.com"
        assert message.subject == "Konfirmasi Booking BK-20300304-1A2B3C - Sada Residence"
        assert "Rp 1.190.500" in message.html
        assert "204" in message.html
        assert f"https://sada.test/booking/{booking.id}" in message.html
        assert "Diskon" not in message.html

    def test_discount_row_shown(self, booking, guest, details):
        booking.discount_amount = Decimal("50000")

        message = templates.booking_confirmation_email(
            booking, guest, details, "Sada Residence", "https://sada.test"
        )

        assert "-Rp 50.000" in message.html

    def test_guest_text_is_escaped(self, booking, details):
        guest = Guest(
            full_name="<script>alert(1)</script>", email="budi@example.com", phone="0812"
        )
        details.property.name = "Kemang & <b>Co</b>"

        confirmation = templates.booking_confirmation_email(
            booking, guest, details, "Sada Residence", "https://sada.test"
        )
        paid = templates.payment_success_email(
            booking, guest, Decimal("500000"), "Sada Residence", "https://sada.test"
        )
        alert = templates.admin_alert_email(
            "admin@example.com",
            templates.new_booking_event(booking, guest, details),
            "Sada Residence",
            "https://sada.test",
            2030,
        )

        for message in (confirmation, paid, alert):
            assert "<script>" not in message.html
            assert "&lt;script&gt;alert(1)&lt;/script&gt;" in message.html
        assert "Kemang &amp; &lt;b&gt;Co&lt;/b&gt;" in confirmation.html
        assert "<strong>BK-20300304-1A2B3C</strong>" in confirmation.html

    def test_events(self, booking, guest, details):
        new_booking = templates.new_booking_event(booking, guest, details)
        payment = templates.payment_received_event(booking, None, Decimal("500000"), "qris")
        check_out = templates.check_out_event(booking, guest, "204")

        assert new_booking.type == NotificationType.NEW_BOOKING
        assert new_booking.send_email
        assert "Budi Santoso" in new_booking.message
        assert payment.message == "Rp 500.000 dari Tamu (BK-20300304-1A2B3C) via qris"
        assert check_out.type == NotificationType.CHECK_OUT
        assert not check_out.send_email


class TestNotificationService:
    def test_admin_alert_sent_for_email_events(self, booking, guest, details):
        notifier = InMemoryNotifier()
        sender = RecordingEmailSender()
        service = NotificationService(notifier, sender, admin_email="admin@example.com")

        service.booking_created(booking, guest, details)

        assert [e.type for e in notifier.events] == [NotificationType.NEW_BOOKING]
        assert [m.to for m in sender.messages] == ["admin@example.com", "budi@example.com"]
        assert sender.messages[0].subject == "[Sada Residence] Booking Baru Masuk"

    def test_no_admin_email_configured(self, booking, guest, details):
        sender = RecordingEmailSender()
        service = NotificationService(InMemoryNotifier(), sender)

        service.booking_created(booking, guest, details, send_confirmation=False)

        assert sender.messages == []

    def test_guest_without_email(self, booking, details):
        sender = RecordingEmailSender()
        service = NotificationService(InMemoryNotifier(), sender)
        walk_in = Guest(full_name="Siti", phone="081234567890")

        service.booking_created(booking, walk_in, details)
        service.payment_received(booking, walk_in, Decimal("1000"), "cash")

        assert sender.messages == []

    def test_failures_are_swallowed(self, booking, guest, details):
        service = NotificationService(
            FailingNotifier(), RecordingEmailSender(fail=True), admin_email="admin@example.com"
        )

        service.booking_created(booking, guest, details)
        service.payment_received(booking, guest, Decimal("1000"), "cash")
        service.checked_in(booking, guest, "204")


class TestEmailSenders:
    def test_http_sender_posts_message(self):
        session = FakeSession()
        sender = HttpEmailSender(
            "https://mail.test/emails", "key-123", "Sada <noreply@sada.test>", session=session
        )

        sender.send(EmailMessage(to="budi@example.com", subject="Halo", html="<p>Hi</p>"))

        [(url, kwargs)] = session.calls
        assert url == "https://mail.test/emails"
        assert kwargs["headers"]["Authorization"] == "Bearer key-123"
        assert kwargs["json"] == {
            "from": "Sada <noreply@sada.test>",
            "to": "budi@example.com",
            "subject": "Halo",
            "html": "<p>Hi</p>",
        }

    @pytest.mark.parametrize(
        "session",
        [
            FakeSession(response=FakeResponse(status_code=500)),
            FakeSession(error=requests.ConnectionError("refused")),
        ],
    )
    def test_http_sender_failure(self, session):
        sender = HttpEmailSender("https://mail.test/emails", "key", "noreply@sada.test", session=session)

        with pytest.raises(UpstreamServiceError):
            sender.send(EmailMessage(to="budi@example.com", subject="Halo", html=""))

    def test_logging_sender_does_not_raise(self):
        LoggingEmailSender().send(EmailMessage(to="budi@example.com", subject="Halo", html=""))
