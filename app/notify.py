from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from prometheus_client import Counter

from app.config import Settings
from app.domain import Notification

logger = logging.getLogger(__name__)

NOTIFICATIONS_TOTAL = Counter(
    "alert_notifications_total", "Alert notification attempts", ["outcome"]
)


class Notifier(Protocol):
    def send(self, notification: Notification) -> bool:
        """Deliver the notification; report failure instead of raising."""
        ...


def render_message(notification: Notification, sender: str) -> EmailMessage:
    asset = notification.asset.upper()
    message = EmailMessage()
    message["From"] = sender
    message["To"] = notification.to_address
    message["Subject"] = f"{asset} Price Alert Triggered!"
    condition = notification.condition.value
    message.set_content(
        f"Your alert for {asset} has been triggered.\n\n"
        f"Condition: price goes {condition}\n"
        f"Target price: ${notification.target_price:,.2f}\n"
        f"Current price: ${notification.current_price:,.2f}\n\n"
        "Check your dashboard for more details.\n"
    )
    message.add_alternative(
        f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #10b981;">Price Alert Triggered!</h2>
  <p>Your alert for <strong>{asset}</strong> has been triggered!</p>
  <div style="background: #f3f4f6; padding: 20px; border-radius: 10px; margin: 20px 0;">
    <p><strong>Condition:</strong> Price goes {condition}</p>
    <p><strong>Target Price:</strong> ${notification.target_price:,.2f}</p>
    <p><strong>Current Price:</strong> ${notification.current_price:,.2f}</p>
  </div>
  <p style="color: #6b7280; font-size: 14px;">Check your dashboard for more details.</p>
</div>
""",
        subtype="html",
    )
    return message


class EmailNotifier:
    """SMTP delivery of triggered-alert emails."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 25,
        sender: str = "alerts@example.com",
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        dry_run: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.dry_run = dry_run
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailNotifier":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            dry_run=settings.email_dry_run,
        )

    def send(self, notification: Notification) -> bool:
        try:
            message = render_message(notification, self.sender)
            if self.dry_run:
                logger.info(
                    "[dry-run] Would send alert email to %s via %s:%s",
                    notification.to_address,
                    self.host,
                    self.port,
                )
            else:
                self._deliver(message)
                logger.info("Email sent to %s", notification.to_address)
        except Exception:
            logger.exception("Error sending alert email to %s", notification.to_address)
            NOTIFICATIONS_TOTAL.labels(outcome="failed").inc()
            return False
        NOTIFICATIONS_TOTAL.labels(outcome="dry_run" if self.dry_run else "sent").inc()
        return True

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)
