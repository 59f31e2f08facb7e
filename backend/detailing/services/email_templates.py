"""
Transactional email templates.

Each builder returns (subject, html, text). HTML uses one shared layout;
anything user-supplied is escaped.
"""

from datetime import datetime
from html import escape
from typing import List, Optional, Tuple

from detailing.config import get_settings
from detailing.utils.status_transitions import get_status_label
from detailing.utils.time_validation import format_time
from detailing.utils.vehicle_size import get_size_label

settings = get_settings()

BRAND = "Love 4 Detailing"
BRAND_COLOR = "#9747FF"

STATUS_MESSAGES = {
    "confirmed": "Your booking has been confirmed!",
    "cancelled": "Your booking has been cancelled",
    "completed": "Your booking has been completed",
    "in_progress": "Your booking is now in progress",
}

REMINDER_COLORS = {
    "gentle": BRAND_COLOR,
    "urgent": "#EA580C",
    "final": "#DC2626",
}

Email = Tuple[str, str, str]


def _layout(title: str, body: str, accent: str = BRAND_COLOR) -> str:
    return f"""<!DOCTYPE html>
<html>
<body style="margin:0;padding:0;background:#f4f4f5;font-family:Arial,Helvetica,sans-serif;color:#18181b;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:24px 0;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:8px;overflow:hidden;">
        <tr><td style="background:{accent};color:#ffffff;padding:20px 24px;font-size:20px;font-weight:bold;">{BRAND}</td></tr>
        <tr><td style="padding:24px;">
          <h1 style="font-size:20px;margin:0 0 16px;">{escape(title)}</h1>
          {body}
        </td></tr>
        <tr><td style="padding:16px 24px;font-size:12px;color:#71717a;border-top:1px solid #e4e4e7;">
          {BRAND} &middot; Mobile car detailing across South London<br>
          This is an automated email. Please do not reply directly to this email.
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _rows(rows: List[Tuple[str, str]]) -> str:
    cells = "".join(
        f'<tr><td style="padding:4px 12px 4px 0;color:#71717a;">{escape(k)}</td>'
        f'<td style="padding:4px 0;font-weight:bold;">{escape(v)}</td></tr>'
        for k, v in rows
    )
    return f'<table cellpadding="0" cellspacing="0" style="margin:16px 0;">{cells}</table>'


def _text_rows(rows: List[Tuple[str, str]]) -> str:
    return "\n".join(f"{k}: {v}" for k, v in rows)


def _button(url: str, label: str, color: str = BRAND_COLOR) -> str:
    return (
        f'<p style="margin:24px 0;"><a href="{escape(url, quote=True)}" '
        f'style="background:{color};color:#ffffff;padding:12px 20px;border-radius:6px;'
        f'text-decoration:none;font-weight:bold;">{escape(label)}</a></p>'
    )


def _booking_rows(booking) -> List[Tuple[str, str]]:
    services = ", ".join(item.service_name for item in (booking.services or [])) or "Detailing service"
    rows = [
        ("Reference", booking.booking_reference),
        ("Service", services),
        ("Date", booking.scheduled_date.strftime("%A %d %B %Y")),
        ("Time", format_time(booking.scheduled_start_time)),
    ]
    vehicle = booking.vehicle_details or {}
    if vehicle:
        rows.append(("Vehicle", " ".join(str(vehicle.get(k)) for k in ("make", "model") if vehicle.get(k))))
    if booking.vehicle_size:
        rows.append(("Vehicle size", get_size_label(booking.vehicle_size)))
    address = booking.service_address or {}
    if address:
        rows.append(("Address", ", ".join(
            str(address.get(k)) for k in ("address_line_1", "city", "postal_code") if address.get(k)
        )))
    if booking.distance_surcharge and float(booking.distance_surcharge) > 0:
        rows.append(("Travel surcharge", f"£{float(booking.distance_surcharge):.2f}"))
    rows.append(("Total", f"£{float(booking.total_price):.2f}"))
    return rows


# =============================================================================
# Booking lifecycle
# =============================================================================

def booking_confirmation(booking, customer_name: str, payment_link: Optional[str] = None,
                         payment_deadline: Optional[datetime] = None) -> Email:
    subject = f"Booking Confirmation - {booking.booking_reference}"
    rows = _booking_rows(booking)
    body = (
        f"<p>Hi {escape(customer_name)},</p>"
        f"<p>Thank you for booking with {BRAND}. We have received your booking request.</p>"
        f"{_rows(rows)}"
    )
    text = f"Hi {customer_name},\n\nThank you for booking with {BRAND}.\n\n{_text_rows(rows)}\n"
    if payment_link:
        deadline = payment_deadline.strftime("%d %B %Y %H:%M") if payment_deadline else "48 hours"
        body += (
            f"<p>Please complete payment by <strong>{escape(deadline)}</strong> to secure your slot. "
            f"Quote your booking reference with the payment.</p>"
            f"{_button(payment_link, 'Pay with PayPal')}"
        )
        text += f"\nPlease pay by {deadline}: {payment_link}\n"
    return subject, _layout("Booking received", body), text


def admin_new_booking(booking, customer_name: str, customer_email: str,
                      customer_phone: Optional[str] = None) -> Email:
    subject = f"New Booking Received - {booking.booking_reference}"
    rows = [("Customer", customer_name), ("Email", customer_email)]
    if customer_phone:
        rows.append(("Phone", customer_phone))
    rows += _booking_rows(booking)
    if booking.special_instructions:
        rows.append(("Instructions", booking.special_instructions))
    body = f"<p>A new booking has been made.</p>{_rows(rows)}"
    text = f"A new booking has been made.\n\n{_text_rows(rows)}\n"
    return subject, _layout("New booking", body), text


def booking_status_update(booking, customer_name: str, previous_status: str,
                          reason: Optional[str] = None) -> Email:
    status = booking.status.value
    message = STATUS_MESSAGES.get(status, "Status Updated")
    subject = f"Booking Update - {booking.booking_reference}: {message}"
    rows = [
        ("Previous status", get_status_label_safe(previous_status)),
        ("New status", get_status_label(booking.status)),
    ] + _booking_rows(booking)
    if reason:
        rows.append(("Reason", reason))
    body = f"<p>Hi {escape(customer_name)},</p><p>{escape(message)}</p>{_rows(rows)}"
    text = f"Hi {customer_name},\n\n{message}\n\n{_text_rows(rows)}\n"
    return subject, _layout("Booking update", body), text


def get_status_label_safe(status: Optional[str]) -> str:
    if not status:
        return "New"
    return status.replace("_", " ").title()


# =============================================================================
# Payments
# =============================================================================

def payment_confirmation(booking, customer_name: str) -> Email:
    subject = f"Payment Received - {booking.booking_reference}"
    rows = _booking_rows(booking)
    body = (
        f"<p>Hi {escape(customer_name)},</p>"
        f"<p>We have received your payment and your booking is confirmed. See you soon!</p>"
        f"{_rows(rows)}"
    )
    text = f"Hi {customer_name},\n\nWe have received your payment and your booking is confirmed.\n\n{_text_rows(rows)}\n"
    return subject, _layout("Payment received", body), text


def admin_payment_received(booking, customer_name: str, payment_reference: Optional[str]) -> Email:
    subject = f"Payment Received - {booking.booking_reference}"
    rows = [("Customer", customer_name), ("Payment reference", payment_reference or "-")] + _booking_rows(booking)
    body = f"<p>A PayPal payment has been received.</p>{_rows(rows)}"
    text = f"A PayPal payment has been received.\n\n{_text_rows(rows)}\n"
    return subject, _layout("Payment received", body), text


def payment_failed(booking, customer_name: str) -> Email:
    subject = f"Payment Deadline Passed - {booking.booking_reference}"
    rows = _booking_rows(booking)
    body = (
        f"<p>Hi {escape(customer_name)},</p>"
        f"<p>We did not receive payment for your booking before the deadline, so it has been "
        f"marked as payment failed. If you still want this appointment, please contact us and "
        f"we will do our best to keep your slot.</p>{_rows(rows)}"
    )
    text = (
        f"Hi {customer_name},\n\nWe did not receive payment for your booking before the deadline.\n"
        f"Please contact us if you still want this appointment.\n\n{_text_rows(rows)}\n"
    )
    return subject, _layout("Payment deadline passed", body, REMINDER_COLORS["final"]), text


def admin_payment_failed(booking, customer_name: str, customer_email: str) -> Email:
    subject = f"Payment Failed - {booking.booking_reference}"
    rows = [("Customer", customer_name), ("Email", customer_email)] + _booking_rows(booking)
    body = f"<p>A booking passed its payment deadline and was marked as payment failed.</p>{_rows(rows)}"
    text = f"A booking passed its payment deadline and was marked as payment failed.\n\n{_text_rows(rows)}\n"
    return subject, _layout("Payment failed", body, REMINDER_COLORS["final"]), text


def payment_reminder(booking_reference: str, customer_name: str, total_price: float,
                     payment_link: str, reminder_type: str, subject: str) -> Email:
    intro = {
        "gentle": "This is a friendly reminder that payment for your booking is still outstanding.",
        "urgent": "Payment for your booking is now overdue. Please pay as soon as possible to keep your slot.",
        "final": "This is a final notice. Without payment your booking will be cancelled.",
    }[reminder_type]
    rows = [("Reference", booking_reference), ("Amount due", f"£{total_price:.2f}")]
    color = REMINDER_COLORS[reminder_type]
    body = (
        f"<p>Hi {escape(customer_name)},</p><p>{intro}</p>{_rows(rows)}"
        f"{_button(payment_link, 'Pay now', color)}"
    )
    text = f"Hi {customer_name},\n\n{intro}\n\n{_text_rows(rows)}\n\nPay now: {payment_link}\n"
    return subject, _layout("Payment reminder", body, color), text


# =============================================================================
# Reschedule
# =============================================================================

def admin_reschedule_request(booking, customer_name: str, request) -> Email:
    subject = f"Reschedule Request - {booking.booking_reference}"
    rows = [
        ("Customer", customer_name),
        ("Reference", booking.booking_reference),
        ("Current", f"{request.original_date:%d %B %Y} at {format_time(request.original_time)}"),
        ("Requested", f"{request.requested_date:%d %B %Y} at {format_time(request.requested_time)}"),
        ("Reason", request.reason),
    ]
    body = f"<p>A customer has asked to reschedule.</p>{_rows(rows)}"
    text = f"A customer has asked to reschedule.\n\n{_text_rows(rows)}\n"
    return subject, _layout("Reschedule request", body), text


def reschedule_response(booking, customer_name: str, request) -> Email:
    approved = request.status.value == "approved"
    subject = (
        f"Reschedule Approved - {booking.booking_reference}" if approved
        else f"Reschedule Update - {booking.booking_reference}"
    )
    if approved:
        message = (
            f"Your booking has been moved to {request.requested_date:%A %d %B %Y} "
            f"at {format_time(request.requested_time)}."
        )
    else:
        message = "We were unable to move your booking to the requested time."
    rows = [("Reference", booking.booking_reference)]
    if request.admin_response:
        rows.append(("Message", request.admin_response))
    body = f"<p>Hi {escape(customer_name)},</p><p>{escape(message)}</p>{_rows(rows)}"
    text = f"Hi {customer_name},\n\n{message}\n\n{_text_rows(rows)}\n"
    return subject, _layout("Reschedule request", body), text


# =============================================================================
# Account
# =============================================================================

def password_reset(customer_name: str, reset_link: str) -> Email:
    subject = f"Reset your password | {BRAND}"
    body = (
        f"<p>Hi {escape(customer_name)},</p>"
        f"<p>We received a request to reset your password. The link expires in "
        f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p>"
        f"{_button(reset_link, 'Reset password')}"
        f"<p>If you did not ask for this you can ignore this email.</p>"
    )
    text = f"Hi {customer_name},\n\nReset your password: {reset_link}\n"
    return subject, _layout("Password reset", body), text


def custom(customer_name: str, subject: str, message: str) -> Email:
    """Free-text email written by an admin. Paragraphs are split on blank lines."""
    paragraphs = [p.strip() for p in message.split("\n\n") if p.strip()]
    html_body = "".join(f"<p>{escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs)
    body = f"<p>Hi {escape(customer_name)},</p>{html_body}"
    text = f"Hi {customer_name},\n\n{message.strip()}\n"
    return subject, _layout(subject, body), text
