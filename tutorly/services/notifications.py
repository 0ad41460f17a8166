"""
Notification Gateway

Sends templated email to one recipient at a time. Failures surface as UpstreamFailure;
`deliver_all` isolates them per recipient so one bad address never blocks the others.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Protocol

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from tutorly import config
from tutorly.errors import UpstreamFailure
from tutorly.services.email_templates import render_email
from tutorly.services.time_slots import time_range

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, recipient: str, template_kind: str, template_data: Dict[str, Any]) -> None:
        ...


@dataclass
class Delivery:
    """One notification to attempt"""
    entity_id: str
    recipient: Optional[str]
    role: str
    template_kind: str
    template_data: Dict[str, Any]


@dataclass
class DeliveryResult:
    entity_id: str
    recipient: Optional[str]
    role: str
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_mail_config() -> ConnectionConfig:
    """SMTP connection settings from the environment"""
    return ConnectionConfig(
        MAIL_USERNAME=config.MAIL_USERNAME,
        MAIL_PASSWORD=config.MAIL_PASSWORD,
        MAIL_FROM=config.MAIL_FROM,
        MAIL_FROM_NAME=config.MAIL_FROM_NAME,
        MAIL_PORT=config.MAIL_PORT,
        MAIL_SERVER=config.MAIL_SERVER,
        MAIL_STARTTLS=config.MAIL_STARTTLS,
        MAIL_SSL_TLS=config.MAIL_SSL_TLS,
        USE_CREDENTIALS=bool(config.MAIL_USERNAME),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=1 if config.MAIL_SUPPRESS_SEND else 0,
    )


class EmailNotifier:
    """Notifier backed by fastapi-mail"""

    def __init__(self, mailer: Optional[FastMail] = None):
        self._mailer = mailer

    @property
    def mailer(self) -> FastMail:
        # Built on first use so importing the app never needs SMTP settings
        if self._mailer is None:
            self._mailer = FastMail(build_mail_config())
        return self._mailer

    async def send(self, recipient: str, template_kind: str, template_data: Dict[str, Any]) -> None:
        if not recipient:
            raise UpstreamFailure("Recipient address is missing", details={"template": template_kind})

        content = render_email(template_kind, template_data)

        try:
            # Address validation happens here, so a malformed address counts as a delivery failure
            message = MessageSchema(
                subject=content.subject,
                recipients=[recipient],
                body=content.html,
                subtype=MessageType.html,
            )
            await self.mailer.send_message(message)
        except Exception as e:
            logger.error(f"Failed to send '{template_kind}' email to {recipient}: {e}")
            raise UpstreamFailure(
                f"Email delivery failed: {e}",
                details={"recipient": recipient, "template": template_kind},
            ) from e

        logger.info(f"Sent '{template_kind}' email to {recipient}")


async def deliver_all(notifier: Notifier, deliveries: Iterable[Delivery]) -> List[DeliveryResult]:
    """
    Attempt every delivery in order; a failure is recorded and the rest still run.
    """
    results = []
    for delivery in deliveries:
        try:
            await notifier.send(delivery.recipient, delivery.template_kind, delivery.template_data)
            results.append(DeliveryResult(delivery.entity_id, delivery.recipient, delivery.role, ok=True))
        except UpstreamFailure as e:
            logger.warning(
                f"Notification to {delivery.role} {delivery.recipient} for {delivery.entity_id} failed: {e.message}"
            )
            results.append(
                DeliveryResult(delivery.entity_id, delivery.recipient, delivery.role, ok=False, error=e.message)
            )
        except Exception as e:
            logger.error(
                f"Unexpected error notifying {delivery.role} {delivery.recipient} for {delivery.entity_id}: {e}",
                exc_info=True,
            )
            results.append(
                DeliveryResult(delivery.entity_id, delivery.recipient, delivery.role, ok=False, error=str(e))
            )
    return results


# Singleton instance
_notifier_instance: Optional[EmailNotifier] = None


def get_notifier() -> EmailNotifier:
    """Get singleton instance of EmailNotifier"""
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = EmailNotifier()
    return _notifier_instance


def format_session_date(value) -> str:
    """Render a session date as "January 10, 2025" """
    if value is None:
        return "N/A"
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def session_deliveries(session, template_kind: str, **extra) -> List[Delivery]:
    """
    Student then tutor deliveries for one session.

    The session must have `student` and `tutor` loaded; `extra` is merged into the
    template data of both.
    """
    student = session.student
    tutor = session.tutor
    base = {
        "student_name": student.name if student else None,
        "tutor_name": tutor.name if tutor else None,
        "session_date": format_session_date(session.date),
        "session_time": time_range(session.slots),
        "session_subject": session.title,
    }
    base.update(extra)

    return [
        Delivery(
            entity_id=str(session.id),
            recipient=party.email if party else None,
            role=role,
            template_kind=template_kind,
            template_data={**base, "type": role},
        )
        for role, party in (("student", student), ("tutor", tutor))
    ]
