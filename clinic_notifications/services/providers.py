"""
Channel providers: WhatsApp chat gateway, Twilio SMS and SMTP email
"""
import html
import os
import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional, Protocol, runtime_checkable

import requests
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from ..models.enums import NotificationChannel
from ..models.message import NotificationMessage, NotificationResult
from ..utils.validation import sanitize_phone, validate_email, validate_international_phone

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationProvider(Protocol):
    channel: NotificationChannel

    def send(self, message: NotificationMessage) -> NotificationResult:
        ...

    def validate_recipient(self, recipient: str) -> bool:
        ...

    def is_configured(self) -> bool:
        ...


class BaseProvider:
    """Shared send guard: configuration and recipient checks before any network call"""

    channel: NotificationChannel = None

    def is_configured(self) -> bool:
        raise NotImplementedError

    def validate_recipient(self, recipient: str) -> bool:
        raise NotImplementedError

    def _deliver(self, message: NotificationMessage) -> NotificationResult:
        raise NotImplementedError

    def send(self, message: NotificationMessage) -> NotificationResult:
        if not self.is_configured():
            return NotificationResult.failure(
                f"{self.channel.value} provider is not configured", retryable=False
            )
        if not self.validate_recipient(message.recipient):
            return NotificationResult.failure(
                f"Invalid recipient for {self.channel.value}: {message.recipient}", retryable=False
            )

        try:
            return self._deliver(message)
        except Exception as e:
            logger.error(f"{self.channel.value} send to {message.recipient} failed: {e}")
            return NotificationResult.failure(str(e))


class WhatsAppProvider(BaseProvider):
    """HTTP chat gateway: POST {api_url}/send with a bearer token"""

    channel = NotificationChannel.WHATSAPP

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                 from_number: Optional[str] = None, timeout: Optional[float] = None):
        self.api_url = (api_url or os.getenv("WHATSAPP_API_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("WHATSAPP_API_KEY")
        self.from_number = from_number or os.getenv("WHATSAPP_FROM_NUMBER")
        self.timeout = timeout or float(os.getenv("WHATSAPP_TIMEOUT_SECONDS", "10"))

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.from_number)

    def validate_recipient(self, recipient: str) -> bool:
        return validate_international_phone(recipient)

    def _deliver(self, message: NotificationMessage) -> NotificationResult:
        payload = {
            "from": self.from_number,
            "to": sanitize_phone(message.recipient),
            "message": message.content,
            "type": "text"
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        try:
            response = requests.post(
                f"{self.api_url}/send", json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"WhatsApp gateway request failed: {e}")
            return NotificationResult.failure(f"WhatsApp gateway request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text[:500]}
        if not isinstance(body, dict):
            body = {"data": body}

        if not response.ok:
            error = body.get("error") or body.get("message") or response.reason
            return NotificationResult.failure(
                f"WhatsApp gateway returned HTTP {response.status_code}: {error}", payload=body
            )

        message_id = body.get("id") or body.get("messageId") or body.get("message_id")
        logger.info(f"WhatsApp message sent to {payload['to']}")
        return NotificationResult(
            success=True,
            provider_message_id=str(message_id) if message_id else None,
            provider_payload=body
        )


class SMSProvider(BaseProvider):
    """Twilio Messages API"""

    channel = NotificationChannel.SMS

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None,
                 from_number: Optional[str] = None):
        self.account_sid = account_sid or os.getenv("TWILIO_ACCOUNT_SID")
        self.auth_token = auth_token or os.getenv("TWILIO_AUTH_TOKEN")
        self.from_number = from_number or os.getenv("TWILIO_FROM_NUMBER")
        self._client = None

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def validate_recipient(self, recipient: str) -> bool:
        return validate_international_phone(recipient)

    @property
    def client(self):
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def _deliver(self, message: NotificationMessage) -> NotificationResult:
        to_phone = sanitize_phone(message.recipient)
        try:
            twilio_message = self.client.messages.create(
                body=message.content,
                from_=self.from_number,
                to=to_phone
            )
        except TwilioRestException as e:
            logger.error(f"Twilio rejected SMS to {to_phone}: {e.msg}")
            return NotificationResult.failure(
                f"Twilio error {e.code}: {e.msg}",
                payload={"status": e.status, "code": e.code}
            )

        logger.info(f"SMS sent to {to_phone}: {twilio_message.sid}")
        return NotificationResult(
            success=True,
            provider_message_id=twilio_message.sid,
            provider_payload={"sid": twilio_message.sid, "status": twilio_message.status}
        )


class EmailProvider(BaseProvider):
    """SMTP with STARTTLS, or implicit TLS on port 465"""

    channel = NotificationChannel.EMAIL

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 user: Optional[str] = None, password: Optional[str] = None,
                 from_email: Optional[str] = None, from_name: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.host = host or os.getenv("SMTP_HOST")
        self.port = int(port or os.getenv("SMTP_PORT", "587"))
        self.user = user or os.getenv("SMTP_USER")
        self.password = password or os.getenv("SMTP_PASSWORD")
        self.from_email = from_email or os.getenv("FROM_EMAIL")
        self.from_name = from_name or os.getenv("FROM_NAME", "Clínica Essencial")
        self.timeout = timeout or float(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))

    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password and self.from_email)

    def validate_recipient(self, recipient: str) -> bool:
        return validate_email(recipient)

    def _build_message(self, message: NotificationMessage) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['From'] = formataddr((self.from_name, self.from_email))
        msg['To'] = message.recipient.strip()
        msg['Subject'] = message.subject or "Lembrete de consulta"
        msg['Message-ID'] = make_msgid(domain=self.from_email.split("@")[-1])

        msg.attach(MIMEText(message.content, 'plain', 'utf-8'))
        html_body = html.escape(message.content).replace("\n", "<br>\n")
        msg.attach(MIMEText(f"<html><body><p>{html_body}</p></body></html>", 'html', 'utf-8'))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def _deliver(self, message: NotificationMessage) -> NotificationResult:
        msg = self._build_message(message)

        # None until the server has accepted the message
        refused = None
        try:
            with self._connect() as server:
                if self.port != 465:
                    server.starttls()
                server.login(self.user, self.password)
                refused = server.send_message(msg)
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"SMTP server refused {message.recipient}: {e.recipients}")
            return NotificationResult.failure(
                f"SMTP server refused recipients: {', '.join(e.recipients)}", retryable=False
            )
        except (smtplib.SMTPException, OSError) as e:
            if refused is None:
                logger.error(f"SMTP send to {message.recipient} failed: {e}")
                return NotificationResult.failure(f"SMTP error: {e}")
            logger.warning(f"SMTP connection to {self.host} closed uncleanly after delivery: {e}")

        if refused:
            return NotificationResult.failure(
                f"SMTP server refused recipients: {', '.join(refused)}",
                retryable=False,
                payload={"refused": {k: str(v) for k, v in refused.items()}}
            )

        logger.info(f"Email sent to {message.recipient}: {msg['Subject']}")
        return NotificationResult(
            success=True,
            provider_message_id=msg['Message-ID'],
            provider_payload={"message_id": msg['Message-ID'], "host": self.host}
        )
