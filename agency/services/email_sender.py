"""E-mail delivery: invoice receipts after a paid order (SMTP, Jinja2 HTML body)."""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from agency.core.config import settings
from agency.services.pricing import format_price

log = logging.getLogger("agency.email")

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)

_PROCESSING_NOTE = {
    "midtrans": "Charged in IDR via Midtrans",
    "paypal": "Charged in USD via PayPal",
    "xendit": "Charged in IDR via Xendit",
}


def is_mail_configured() -> bool:
    return bool((settings.smtp_host or "").strip())


def build_invoice_email(
    provider: str,
    order_id: str,
    domain: str | None,
    amount: float,
    currency: str,
    env: str,
    customer_name: str | None = None,
) -> tuple[str, str]:
    """(subject, html)"""
    amount_label = format_price(amount, currency)
    html = _env.get_template("email/invoice.html").render(
        provider=provider,
        order_id=order_id,
        domain=domain or "-",
        amount_label=amount_label,
        currency=currency,
        env=env,
        customer_name=customer_name,
        processing_note=_PROCESSING_NOTE.get(provider, provider),
        site_name=settings.site_name,
    )
    return f"Invoice: {amount_label} ({currency})", html


def send_email(to: str, subject: str, html_body: str) -> bool:
    """Sends one HTML e-mail. True on success."""
    if not is_mail_configured():
        log.warning("SMTP not configured; email not sent to %s", to)
        return False
    host = settings.smtp_host.strip()
    port = int(settings.smtp_port or 587)
    user = (settings.smtp_user or "").strip()
    password = (settings.smtp_password or "").strip()
    from_addr = (settings.smtp_from or "noreply@agency.local").strip()
    from_name = (settings.smtp_from_name or "").strip()
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
    msg["To"] = to
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(host, port, timeout=15) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if user and password:
                smtp.login(user, password)
            smtp.sendmail(from_addr, [to], msg.as_string())
        log.info("Email sent to %s subject=%s", to, subject[:50])
        return True
    except (smtplib.SMTPException, OSError) as e:
        log.exception("Failed to send email to %s: %s", to, e)
        return False


def send_invoice_email(to: str, **invoice) -> bool:
    if not (to or "").strip():
        return False
    subject, html = build_invoice_email(**invoice)
    return send_email(to.strip(), subject, html)
