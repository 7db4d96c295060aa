"""
Тесты настроек и корня композиции.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from rental_platform.booking.infrastructure import InMemoryUnitOfWork
from rental_platform.bootstrap import (
    bootstrap_app,
    build_email_sender,
    build_gateway,
    build_uow,
    seed_sample_data,
)
from rental_platform.config import Settings
from rental_platform.notifications.infrastructure import HttpEmailSender, LoggingEmailSender
from rental_platform.payments.infrastructure import DummyPaymentGateway, XenditGateway
from rental_platform.persistence import SqlUnitOfWork
from rental_platform.shared_kernel import StayType


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.app_name == "Sada Residence"
        assert settings.currency == "IDR"
        assert settings.database_url is None
        assert settings.invoice_duration_seconds == 86400
        assert settings.sender == "Sada Residence <noreply@sadaresidence.com>"

    def test_from_mapping(self):
        settings = Settings.from_env(
            {
                "APP_NAME": "Sada Kemang",
                "APP_URL": "https://sada.test",
                "XENDIT_WEBHOOK_TOKEN": "cb-token",
                "INVOICE_DURATION_SECONDS": "3600",
                "PENDING_TIMEOUT_HOURS": "12",
                "EMAIL_FROM": "Sada <hello@sada.test>",
                "ADMIN_EMAIL": "",
            }
        )

        assert settings.app_name == "Sada Kemang"
        assert settings.xendit_webhook_token == "cb-token"
        assert settings.invoice_duration_seconds == 3600
        assert settings.pending_timeout_hours == 12
        assert settings.sender == "Sada <hello@sada.test>"
        # Пустые переменные не задают значение
        assert settings.admin_email is None

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "From Env")

        assert Settings.from_env(dotenv=False).app_name == "From Env"

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            Settings.from_env({"INVOICE_DURATION_SECONDS": "0"})


class TestBootstrap:
    def test_defaults_use_local_adapters(self):
        settings = Settings()

        assert isinstance(build_gateway(settings), DummyPaymentGateway)
        assert isinstance(build_email_sender(settings), LoggingEmailSender)
        assert isinstance(build_uow(settings), InMemoryUnitOfWork)

    def test_configured_adapters(self):
        settings = Settings(
            xendit_secret_key="xnd_development_key",
            email_api_key="re_key",
            database_url="sqlite://",
        )

        assert isinstance(build_gateway(settings), XenditGateway)
        assert isinstance(build_email_sender(settings), HttpEmailSender)
        assert isinstance(build_uow(settings), SqlUnitOfWork)

    def test_container_wires_services(self):
        container = bootstrap_app(Settings(pending_timeout_hours=2))
        prop = seed_sample_data(container.uow)
        room = container.uow.rooms.list_active(property_id=prop.id)[0]

        result = container.reservations.create_reservation(
            {
                "room_id": room.id,
                "check_in": "2030-03-04",
                "check_out": "2030-03-06",
                "guest": {
                    "full_name": "Budi Santoso",
                    "email": "budi@example.com",
                    "phone": "081234567890",
                },
            }
        )

        assert result.payment_url is not None
        assert container.bookings.get_booking(result.booking.id).booking_code == (
            result.booking.booking_code
        )
        assert container.notifier.events
        assert len(container.rate_admin.list_rates()) == 3
        created = container.bookings.get_booking(result.booking.id).created_at
        assert container.bookings.stale_pending(at=created + timedelta(hours=3))

    def test_seed_rates(self):
        uow = InMemoryUnitOfWork()
        seed_sample_data(uow)

        rates = {rate.stay_type: rate for rate in uow.rates.list_active()}

        assert set(rates) == set(StayType)
        assert rates[StayType.WEEKLY].min_stay == 7
        assert rates[StayType.MONTHLY].min_stay == 28
