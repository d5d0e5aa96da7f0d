"""
Email Service for the storefront
Sends transactional email (order confirmations) over SMTP
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending notifications"""

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 465,
        username: str = "",
        password: str = "",
        use_ssl: bool = True,
        from_email: str = "",
        from_name: str = "",
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.from_email = from_email or username
        self.from_name = from_name
        self.configured = bool(smtp_host and username)

    @classmethod
    def from_settings(cls, config: Settings) -> "EmailService":
        return cls(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            use_ssl=config.smtp_use_ssl,
            from_email=config.smtp_from_email,
            from_name=config.smtp_from_name,
        )

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email

        Args:
            to: Recipient email address
            subject: Email subject
            body: Plain text body
            html_body: Optional HTML body

        Returns:
            True if sent successfully. Failures are logged, never raised.
        """
        if not self.configured:
            logger.warning(f"Email not configured, would send to {to}: {subject}")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f'"{self.from_name}" <{self.from_email}>' if self.from_name else self.from_email
        msg['To'] = to
        msg.attach(MIMEText(body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))

        try:
            smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
            with smtp_cls(self.smtp_host, self.smtp_port, timeout=15) as server:
                if not self.use_ssl:
                    server.starttls()
                server.login(self.username, self.password)
                server.sendmail(self.from_email, to, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"Email sent to {to}: {subject}")
        return True


def get_email_service() -> EmailService:
    """FastAPI dependency building the SMTP client from settings."""
    return EmailService.from_settings(settings)


def send_order_confirmation(email_service: EmailService, order: Dict[str, Any]) -> bool:
    """Send the "order confirmed" email for a paid order snapshot.

    ``order`` is a plain dict (see ``order_lifecycle.confirmation_snapshot``)
    so this can run as a background task after the request session closes.
    """
    to = order.get("delivery_email")
    if not to:
        return False

    lines = "\n".join(
        f"- {item['quantity']}x {item['item_name']} - Rs {item['line_subtotal']}"
        for item in order.get("items", [])
    )
    track_url = f"{settings.public_base_url}/orders/{order['id']}"
    subject = f"Order Confirmed! #{order['order_number']}"

    body = f"""
Hi {order.get('delivery_name') or 'there'},

We've received your order #{order['order_number']} and we're starting to prepare it right now!

What you ordered:
{lines}

Total paid: Rs {order['total']}

Delivery address:
{order['address']}

Track your order: {track_url}
"""

    html_items = "".join(
        f"<li>{item['quantity']}x {item['item_name']} - &#8377;{item['line_subtotal']}</li>"
        for item in order.get("items", [])
    )
    html_body = f"""
    <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
        <h1>Order Confirmed!</h1>
        <h2>Order #{order['order_number']}</h2>
        <p>Hi {order.get('delivery_name') or 'there'},</p>
        <p>We've received your order and we're starting to prepare it right now!</p>
        <ul>{html_items}</ul>
        <p><b>Total Paid:</b> &#8377;{order['total']}</p>
        <p><b>Delivery Address:</b><br/>{order['address']}</p>
        <p><a href="{track_url}">Track Your Order</a></p>
    </div>
    """

    return email_service.send(to=to, subject=subject, body=body, html_body=html_body)
