# barbershop/notifications.py
"""
Best-effort client notifications: email over SMTP, SMS through Twilio.

Each channel is used only when it is configured. Senders never raise;
they return the list of channel errors so the caller can log them.
"""

import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from email.mime.text import MIMEText
from typing import List, Optional, Protocol

import httpx

from .config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


@dataclass(frozen=True)
class ReservationNotice:
    reservation_id: int
    client_name: str
    client_email: str
    client_phone: Optional[str]
    service_name: str
    barber_name: str
    start_at: datetime
    amount: Optional[Decimal] = None


class NotificationSender(Protocol):
    def send_confirmation(self, notice: ReservationNotice) -> List[str]: ...

    def send_cancellation(self, notice: ReservationNotice) -> List[str]: ...

    def send_reminder(self, notice: ReservationNotice) -> List[str]: ...


def _when(start_at: datetime) -> str:
    return start_at.strftime("%d/%m/%Y at %H:%M")


class ShopNotifier:
    def __init__(
        self,
        shop_name: str = settings.shop_name,
        frontend_url: str = settings.frontend_url,
        email_from: str = settings.email_from,
        smtp_host: Optional[str] = settings.smtp_host,
        smtp_port: int = settings.smtp_port,
        smtp_username: Optional[str] = settings.smtp_username,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = settings.smtp_use_tls,
        twilio_account_sid: Optional[str] = settings.twilio_account_sid,
        twilio_auth_token: Optional[str] = None,
        twilio_from_number: Optional[str] = settings.twilio_from_number,
    ):
        self.shop_name = shop_name
        self.frontend_url = frontend_url.rstrip("/")
        self.email_from = email_from
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.twilio_account_sid = twilio_account_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_from_number = twilio_from_number

    @classmethod
    def from_settings(cls) -> "ShopNotifier":
        return cls(
            smtp_password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
            twilio_auth_token=(
                settings.twilio_auth_token.get_secret_value() if settings.twilio_auth_token else None
            ),
        )

    @property
    def sms_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)

    def _manage_link(self, reservation_id: int) -> str:
        return f"{self.frontend_url}/cancel?bookingId={reservation_id}"

    # -- public API ---------------------------------------------------

    def send_confirmation(self, notice: ReservationNotice) -> List[str]:
        amount = f"\nTotal paid: {notice.amount:.2f}" if notice.amount is not None else ""
        body = (
            f"Hi {notice.client_name},\n\n"
            f"Your booking is confirmed: {notice.service_name} with {notice.barber_name} "
            f"on {_when(notice.start_at)}.{amount}\n\n"
            f"To cancel (at least {settings.cancellation_lead_hours}h before): "
            f"{self._manage_link(notice.reservation_id)}\n"
        )
        sms = f"{self.shop_name}: booking confirmed. {notice.service_name} with {notice.barber_name}, {_when(notice.start_at)}."
        return self._deliver(notice, f"Booking confirmed - {notice.service_name} | {self.shop_name}", body, sms)

    def send_cancellation(self, notice: ReservationNotice) -> List[str]:
        body = (
            f"Hi {notice.client_name},\n\n"
            f"Your booking for {notice.service_name} with {notice.barber_name} "
            f"on {_when(notice.start_at)} has been cancelled.\n"
        )
        return self._deliver(notice, f"Booking cancelled | {self.shop_name}", body, None)

    def send_reminder(self, notice: ReservationNotice) -> List[str]:
        body = (
            f"Hi {notice.client_name},\n\n"
            f"This is a reminder of your booking tomorrow: {notice.service_name} with "
            f"{notice.barber_name} on {_when(notice.start_at)}.\n\n"
            f"Need to cancel? {self._manage_link(notice.reservation_id)}\n"
        )
        sms = (
            f"{self.shop_name}: reminder! {notice.service_name} with {notice.barber_name} "
            f"{_when(notice.start_at)}. Cancel: {self._manage_link(notice.reservation_id)}"
        )
        return self._deliver(
            notice, f"Reminder - tomorrow at {notice.start_at:%H:%M} | {self.shop_name}", body, sms
        )

    # -- channels -----------------------------------------------------

    def _deliver(self, notice: ReservationNotice, subject: str, body: str, sms: Optional[str]) -> List[str]:
        errors: List[str] = []

        if self.smtp_host:
            try:
                self._send_email(notice.client_email, subject, body)
                logger.info("email_sent reservation_id=%s to=%s", notice.reservation_id, notice.client_email)
            except (smtplib.SMTPException, OSError) as exc:
                logger.warning("email_failed reservation_id=%s error=%s", notice.reservation_id, exc)
                errors.append(f"Email: {exc}")
        else:
            logger.info("email_skipped reservation_id=%s subject=%r (SMTP not configured)", notice.reservation_id, subject)

        if sms and notice.client_phone and self.sms_enabled:
            try:
                self._send_sms(notice.client_phone, sms)
                logger.info("sms_sent reservation_id=%s to=%s", notice.reservation_id, notice.client_phone)
            except httpx.HTTPError as exc:
                logger.warning("sms_failed reservation_id=%s error=%s", notice.reservation_id, exc)
                errors.append(f"SMS: {exc}")

        return errors

    def _send_email(self, to: str, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.email_from
        msg["To"] = to

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            if self.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.sendmail(self.email_from.split("<")[-1].rstrip(">"), [to], msg.as_string())

    def _send_sms(self, to: str, body: str) -> None:
        response = httpx.post(
            TWILIO_MESSAGES_URL.format(sid=self.twilio_account_sid),
            data={"From": self.twilio_from_number, "To": to, "Body": body},
            auth=(self.twilio_account_sid, self.twilio_auth_token),
            timeout=10.0,
        )
        response.raise_for_status()


def get_notifier() -> NotificationSender:
    return ShopNotifier.from_settings()
