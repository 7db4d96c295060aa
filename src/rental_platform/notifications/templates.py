"""
Шаблоны уведомлений и писем.

Тексты адресованы гостям и персоналу, поэтому написаны на индонезийском.
"""

from __future__ import annotations

from datetime import date
from html import escape
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from .domain import EmailMessage, NotificationEvent, NotificationType, format_currency

if TYPE_CHECKING:
    from ..booking.domain import Booking, Guest
    from ..catalog.domain import RoomDetails

_DAYS = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
_MONTHS = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width"></head>
<body style="font-family:'Segoe UI',Arial,sans-serif;background:#f5f5f5;margin:0;padding:20px;">
<div style="max-width:600px;margin:0 auto;background:#fff;border-radius:8px;overflow:hidden;">
  <div style="background:#1a1a2e;color:#fff;padding:24px;text-align:center;">
    <h1 style="margin:0;font-size:24px;">{app_name}</h1>
    <p style="margin:8px 0 0;color:#c9a96e;">{heading}</p>
  </div>
  <div style="padding:24px;">
{body}
    <div style="text-align:center;margin:24px 0;">
      <a href="{link}" style="display:inline-block;background:#1a1a2e;color:#fff;text-decoration:none;padding:12px 32px;border-radius:6px;font-weight:bold;">{link_label}</a>
    </div>
  </div>
  <div style="background:#f5f5f5;padding:16px;text-align:center;color:#999;font-size:12px;">
    &copy; {year} {app_name}. All rights reserved.
  </div>
</div>
</body>
</html>"""


def format_date(value: date) -> str:
    """Дата в виде "Senin, 2 Maret 2026"."""
    return f"{_DAYS[value.weekday()]}, {value.day} {_MONTHS[value.month - 1]} {value.year}"


def _row(label: str, value: str, strong: bool = False) -> str:
    # Подпись задается шаблоном, значение экранируется
    value = escape(value)
    if strong:
        value = f"<strong>{value}</strong>"
    return (
        f'        <tr><td style="padding:6px 0;color:#666;">{label}</td>'
        f'<td style="padding:6px 0;">{value}</td></tr>'
    )


def _guest_name(guest: Optional[Guest]) -> str:
    return guest.full_name if guest is not None else "Tamu"


def booking_confirmation_email(
    booking: Booking,
    guest: Guest,
    details: RoomDetails,
    app_name: str,
    app_url: str,
    currency: str = "IDR",
) -> EmailMessage:
    """Письмо гостю с подтверждением бронирования."""
    rows = [
        _row("Kode Booking", booking.booking_code, strong=True),
        _row("Properti", details.property.name),
        _row("Tipe Kamar", details.room_type.name),
        _row("No. Kamar", details.room.room_number),
        _row("Check-in", format_date(booking.check_in)),
        _row("Check-out", format_date(booking.check_out)),
        _row("Tipe Stay", booking.stay_type.value.capitalize()),
        _row("Harga Kamar", format_currency(booking.base_price, currency)),
        _row("Pajak", format_currency(booking.tax_amount, currency)),
        _row("Biaya Layanan", format_currency(booking.service_fee, currency)),
    ]
    if booking.discount_amount > 0:
        rows.append(_row("Diskon", "-" + format_currency(booking.discount_amount, currency)))
    rows.append(_row("<strong>Total</strong>", format_currency(booking.total_amount, currency)))

    body = "\n".join(
        [
            f"    <p>Halo <strong>{escape(guest.full_name)}</strong>,</p>",
            "    <p>Terima kasih telah melakukan booking. Berikut detail reservasi Anda:</p>",
            '    <table style="width:100%;border-collapse:collapse;">',
            *rows,
            "    </table>",
        ]
    )
    html = _LAYOUT.format(
        app_name=app_name,
        heading="Konfirmasi Booking",
        body=body,
        link=f"{app_url}/booking/{booking.id}",
        link_label="Lihat Detail Booking",
        year=booking.created_at.year,
    )
    return EmailMessage(
        to=guest.email or "",
        subject=f"Konfirmasi Booking {booking.booking_code} - {app_name}",
        html=html,
    )


def payment_success_email(
    booking: Booking,
    guest: Guest,
    amount: Decimal,
    app_name: str,
    app_url: str,
    currency: str = "IDR",
) -> EmailMessage:
    """Письмо гостю об успешной оплате."""
    body = (
        f"    <p>Halo <strong>{escape(guest.full_name)}</strong>,</p>\n"
        f"    <p>Pembayaran sebesar <strong>{format_currency(amount, currency)}</strong> "
        f"untuk booking <strong>{escape(booking.booking_code)}</strong> telah berhasil diterima.</p>"
    )
    html = _LAYOUT.format(
        app_name=app_name,
        heading="Pembayaran Berhasil",
        body=body,
        link=f"{app_url}/booking/{booking.id}",
        link_label="Lihat Detail Booking",
        year=booking.updated_at.year,
    )
    return EmailMessage(
        to=guest.email or "",
        subject=f"Pembayaran Berhasil - {booking.booking_code} - {app_name}",
        html=html,
    )


def admin_alert_email(
    to: str, event: NotificationEvent, app_name: str, app_url: str, year: int
) -> EmailMessage:
    """Письмо администратору с текстом уведомления."""
    link = f"{app_url}{event.action_url or '/admin/overview'}"
    body = (
        f'    <h3 style="margin:0 0 8px;color:#1a1a2e;">{escape(event.title)}</h3>\n'
        f'    <p style="color:#555;margin:0 0 16px;">{escape(event.message)}</p>'
    )
    html = _LAYOUT.format(
        app_name=app_name,
        heading="Admin Notification",
        body=body,
        link=link,
        link_label="Lihat di Dashboard",
        year=year,
    )
    return EmailMessage(to=to, subject=f"[{app_name}] {event.title}", html=html)


def new_booking_event(
    booking: Booking, guest: Optional[Guest], details: RoomDetails
) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.NEW_BOOKING,
        title="Booking Baru Masuk",
        message=(
            f"{_guest_name(guest)} booking kamar {details.room.room_number} "
            f"di {details.property.name} ({booking.booking_code})"
        ),
        reference_type="booking",
        reference_id=booking.id,
        action_url="/admin/bookings",
        send_email=True,
        metadata={
            "booking_code": booking.booking_code,
            "total_amount": str(booking.total_amount),
        },
    )


def payment_received_event(
    booking: Booking,
    guest: Optional[Guest],
    amount: Decimal,
    method: str,
    currency: str = "IDR",
) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.PAYMENT_RECEIVED,
        title="Pembayaran Diterima",
        message=(
            f"{format_currency(amount, currency)} dari {_guest_name(guest)} "
            f"({booking.booking_code}) via {method}"
        ),
        reference_type="payment",
        reference_id=booking.id,
        action_url="/admin/bookings",
        send_email=True,
        metadata={
            "amount": str(amount),
            "method": method,
            "booking_code": booking.booking_code,
        },
    )


def onsite_payment_event(
    booking: Booking, amount: Decimal, method: str, currency: str = "IDR"
) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.ONSITE_PAYMENT,
        title="Pembayaran di Lokasi",
        message=(
            f"{format_currency(amount, currency)} diterima untuk "
            f"{booking.booking_code} via {method}"
        ),
        reference_type="payment",
        reference_id=booking.id,
        action_url="/admin/bookings",
    )


def check_in_event(
    booking: Booking, guest: Optional[Guest], room_number: str
) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.CHECK_IN,
        title="Tamu Check-In",
        message=f"{_guest_name(guest)} check-in kamar {room_number} ({booking.booking_code})",
        reference_type="booking",
        reference_id=booking.id,
        action_url="/admin/bookings",
    )


def check_out_event(
    booking: Booking, guest: Optional[Guest], room_number: str
) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.CHECK_OUT,
        title="Tamu Check-Out",
        message=f"{_guest_name(guest)} check-out kamar {room_number} ({booking.booking_code})",
        reference_type="booking",
        reference_id=booking.id,
        action_url="/admin/bookings",
    )
