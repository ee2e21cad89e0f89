# portal/emailer.py
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from .settings import settings

log = logging.getLogger(__name__)


def mail_configured() -> bool:
    return bool(settings.smtp_host and settings.mail_from)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Plain-text mail over SMTP (STARTTLS when credentials are set).
    Returns False instead of raising: mail is a side channel and never fails a request.
    """
    if not to_email:
        return False
    if not mail_configured():
        log.warning("mail not configured; dropping %r to %s", subject, to_email)
        return False

    msg = EmailMessage()
    msg["From"] = settings.mail_from
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            if settings.smtp_user:
                smtp.starttls()
                smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        log.error("sending %r to %s failed: %s", subject, to_email, e)
        return False

    log.info("sent %r to %s", subject, to_email)
    return True


def send_order_notification(order, client) -> bool:
    if not settings.orders_email_to:
        return False

    lines = [
        f"{i + 1}. x{it.quantity} {it.product_name}"
        + (f" ({it.variant_name})" if it.variant_name else "")
        + f" = {float(it.total_price):.2f}"
        for i, it in enumerate(order.items)
    ]
    body = (
        f"Client: {client.business_name} ({client.contact_person})\n"
        f"Email: {client.email}\n"
        f"Phone: {client.phone}\n\n"
        + "\n".join(lines)
        + f"\n\nSubtotal: {float(order.subtotal):.2f}"
        + f"\nGST: {float(order.tax_amount):.2f}"
        + f"\nShipping: {float(order.shipping_amount):.2f}"
        + f"\nTotal: {float(order.total_amount):.2f}\n"
    )
    return send_email(
        to_email=settings.orders_email_to,
        subject=f"New Order {order.order_number}",
        body=body,
    )


def send_password_reset(to_email: str, reset_link: str, user_type: str) -> bool:
    who = "Admin" if user_type == "admin" else "Account"
    body = (
        "We received a request to reset your password.\n\n"
        f"Open this link within 1 hour to choose a new one:\n{reset_link}\n\n"
        "If you did not ask for this, you can ignore this email."
    )
    return send_email(to_email=to_email, subject=f"Reset your {who} Password", body=body)
