"""
Настройки приложения из переменных окружения (и файла .env).
"""

import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Настройки платформы."""

    app_name: str = "Sada Residence"
    app_url: str = "http://localhost:3000"
    currency: str = "IDR"
    database_url: Optional[str] = None
    log_level: str = "INFO"

    # Xendit
    xendit_secret_key: Optional[str] = None
    xendit_base_url: str = "https://api.xendit.co"
    xendit_webhook_token: Optional[str] = None
    invoice_duration_seconds: int = Field(86400, gt=0)

    # Почта
    admin_email: Optional[str] = None
    email_api_key: Optional[str] = None
    email_api_url: str = "https://api.resend.com/emails"
    email_from: Optional[str] = None

    pending_timeout_hours: int = Field(24, gt=0)

    @property
    def sender(self) -> str:
        return self.email_from or f"{self.app_name} <noreply@sadaresidence.com>"

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True
    ) -> "Settings":
        """Читает настройки из окружения; незаданные переменные берут значения по умолчанию."""
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        values = {
            field: environ[field.upper()]
            for field in cls.model_fields
            if environ.get(field.upper())
        }
        return cls.model_validate(values)


__all__ = ["Settings"]
