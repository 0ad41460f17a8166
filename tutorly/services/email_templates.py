"""
Email Templates

Renders the notification kinds the lifecycle engine sends (cancellation,
auto-cancellation, completion, reminder) into subject, HTML body and plain-text body.
Every template takes a `type` of "student" or "tutor" and renders from that party's
point of view.
"""
from dataclasses import dataclass
from html import escape
from typing import Any, Dict, List, Optional, Tuple


class TemplateKind:
    CANCELLATION = "cancellation"
    AUTO_CANCELLATION = "auto_cancellation"
    COMPLETION = "completion"
    SESSION_REMINDER = "session_reminder"

    ALL = (CANCELLATION, AUTO_CANCELLATION, COMPLETION, SESSION_REMINDER)


ALERT_COLORS = {
    "info": "#3b82f6",
    "success": "#10b981",
    "warning": "#f59e0b",
    "error": "#ef4444",
}


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


def _build_html(
    title: str,
    paragraphs: List[str],
    alert_type: str,
    alert_message: str,
    details: List[Tuple[str, Any]],
    footer: Optional[str] = None,
    cta: Optional[Tuple[str, str]] = None,
) -> str:
    color = ALERT_COLORS.get(alert_type, ALERT_COLORS["info"])
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    rows = "".join(
        f"<tr><td style=\"padding: 4px 12px 4px 0;\"><strong>{escape(label)}:</strong></td>"
        f"<td>{escape(str(value))}</td></tr>"
        for label, value in details
    )
    button = ""
    if cta:
        text, url = cta
        button = (
            f"<p style=\"margin: 24px 0;\"><a href=\"{escape(url, quote=True)}\" "
            f"style=\"background-color: #3b82f6; color: #ffffff; padding: 10px 20px; "
            f"border-radius: 5px; text-decoration: none;\">{escape(text)}</a></p>"
        )
    footer_html = f"<p style=\"color: #6b7280;\">{escape(footer)}</p>" if footer else ""

    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: {color};">{escape(title)}</h2>
            {body}
            <div style="border-left: 4px solid {color}; padding: 10px 15px; margin: 20px 0;">
                {escape(alert_message)}
            </div>
            <table style="background-color: #f9f9f9; padding: 15px; border-radius: 5px;">{rows}</table>
            {button}
            {footer_html}
            <p style="margin-top: 30px;">Best regards,<br><strong>The Tutorly Team</strong></p>
        </div>
    </body>
    </html>
    """


def _build_text(
    title: str,
    paragraphs: List[str],
    alert_message: str,
    details: List[Tuple[str, Any]],
    footer: Optional[str] = None,
    cta: Optional[Tuple[str, str]] = None,
) -> str:
    lines = [title, ""]
    lines.extend(paragraphs)
    lines.extend(["", alert_message, ""])
    lines.extend(f"{label}: {value}" for label, value in details)
    if cta:
        lines.extend(["", f"{cta[0]}: {cta[1]}"])
    if footer:
        lines.extend(["", footer])
    lines.extend(["", "Best regards,", "The Tutorly Team"])
    return "\n".join(lines)


def _render(subject: str, title: str, paragraphs, alert_type, alert_message, details, footer=None, cta=None):
    return EmailContent(
        subject=subject,
        html=_build_html(title, [escape(p) for p in paragraphs], alert_type, alert_message, details, footer, cta),
        text=_build_text(title, paragraphs, alert_message, details, footer, cta),
    )


def cancellation_email(data: Dict[str, Any]) -> EmailContent:
    is_student = data.get("type") == "student"
    student_name = data.get("student_name") or "Student"
    tutor_name = data.get("tutor_name") or "Tutor"
    reason = data.get("reason")
    refund_amount = data.get("refund_amount")

    if is_student:
        paragraphs = [
            f"Dear {student_name},",
            f"Your tutoring session with {tutor_name} has been cancelled.",
        ]
        if refund_amount:
            paragraphs.append(f"A refund of Rs. {refund_amount} will be processed within 3-5 business days.")
    else:
        paragraphs = [
            f"Dear {tutor_name},",
            f"The tutoring session with {student_name} has been cancelled.",
        ]

    details = [
        ("Tutor" if is_student else "Student", tutor_name if is_student else student_name),
        ("Date", data.get("session_date") or "N/A"),
    ]
    if reason:
        details.append(("Reason", reason))
    if refund_amount:
        details.append(("Refund Amount", f"Rs. {refund_amount}"))

    return _render(
        "Session Cancellation Notice",
        "Session Cancelled",
        paragraphs,
        "warning",
        "Session has been cancelled",
        details,
        footer="We hope to serve you better in the future",
    )


def auto_cancellation_email(data: Dict[str, Any]) -> EmailContent:
    is_student = data.get("type") == "student"
    student_name = data.get("student_name") or "Student"
    tutor_name = data.get("tutor_name") or "Tutor"
    refund_amount = data.get("refund_amount")

    if is_student:
        paragraphs = [
            f"Dear {student_name},",
            f"Your tutoring session with {tutor_name} has been automatically cancelled because "
            f"the tutor did not start the session within the allocated time window.",
            "We sincerely apologize for this inconvenience.",
        ]
        if refund_amount:
            paragraphs.append(
                f"A full refund of Rs. {refund_amount} will be processed automatically within 3-5 business days."
            )
        alert_message = "Session cancelled due to tutor absence"
        footer = "We are committed to providing you with reliable tutoring services"
    else:
        paragraphs = [
            f"Dear {tutor_name},",
            f"Your scheduled tutoring session with {student_name} has been automatically cancelled "
            f"because it was not started within the required time window.",
            "Sessions must be started within 15 minutes of the scheduled end time.",
        ]
        alert_message = "Session auto-cancelled - action required"
        footer = "Please ensure punctuality for future sessions to maintain your tutor rating"

    details = [
        ("Tutor" if is_student else "Student", tutor_name if is_student else student_name),
        ("Scheduled Date", data.get("session_date") or "N/A"),
        ("Scheduled Time", data.get("session_time") or "N/A"),
    ]
    if data.get("session_subject"):
        details.append(("Subject", data["session_subject"]))
    if refund_amount:
        details.append(("Refund Amount", f"Rs. {refund_amount}"))

    return _render(
        "Session Auto-Cancelled - Immediate Action Required",
        "Session Auto-Cancelled",
        paragraphs,
        "error",
        alert_message,
        details,
        footer=footer,
    )


def completion_email(data: Dict[str, Any]) -> EmailContent:
    is_student = data.get("type") == "student"
    student_name = data.get("student_name") or "Student"
    tutor_name = data.get("tutor_name") or "Tutor"

    if is_student:
        paragraphs = [
            f"Dear {student_name},",
            f"Your tutoring session with {tutor_name} has been successfully completed.",
            "Please consider leaving a review to help other students and support your tutor.",
        ]
        footer = "Thank you for choosing Tutorly for your learning journey"
    else:
        paragraphs = [
            f"Dear {tutor_name},",
            f"Your tutoring session with {student_name} has been marked as completed.",
            "Your payment will be processed according to our standard schedule.",
        ]
        footer = "Thank you for being part of the Tutorly community"

    details = [
        ("Tutor" if is_student else "Student", tutor_name if is_student else student_name),
        ("Date", data.get("session_date") or "N/A"),
        ("Time", data.get("session_time") or "N/A"),
    ]
    if data.get("session_subject"):
        details.append(("Subject", data["session_subject"]))
    if data.get("session_duration"):
        details.append(("Duration", data["session_duration"]))
    if data.get("amount") and is_student:
        details.append(("Session Fee", f"Rs. {data['amount']}"))

    return _render(
        "Session Completed Successfully",
        "Session Completed!",
        paragraphs,
        "success",
        "Session successfully completed!",
        details,
        footer=footer,
    )


def session_reminder_email(data: Dict[str, Any]) -> EmailContent:
    is_student = data.get("type") == "student"
    student_name = data.get("student_name") or "Student"
    tutor_name = data.get("tutor_name") or "Tutor"
    reminder_time = data.get("reminder_time") or "soon"
    meeting_link = data.get("meeting_link")

    if is_student:
        paragraphs = [
            f"Dear {student_name},",
            f"This is a friendly reminder that you have a tutoring session with {tutor_name} "
            f"coming up in {reminder_time}.",
            "Please make sure you're prepared and have a stable internet connection.",
        ]
    else:
        paragraphs = [
            f"Dear {tutor_name},",
            f"This is a reminder that you have a tutoring session with {student_name} "
            f"coming up in {reminder_time}.",
            "Please ensure you're prepared with all necessary materials.",
        ]

    details = [
        ("Tutor" if is_student else "Student", tutor_name if is_student else student_name),
        ("Date", data.get("session_date") or "N/A"),
        ("Time", data.get("session_time") or "N/A"),
    ]

    return _render(
        f"Session Reminder - {reminder_time}",
        f"Session Reminder - {reminder_time}",
        paragraphs,
        "info",
        f"Session starts in {reminder_time}",
        details,
        cta=("Join Session", meeting_link) if meeting_link else None,
    )


TEMPLATES = {
    TemplateKind.CANCELLATION: cancellation_email,
    TemplateKind.AUTO_CANCELLATION: auto_cancellation_email,
    TemplateKind.COMPLETION: completion_email,
    TemplateKind.SESSION_REMINDER: session_reminder_email,
}


def render_email(template_kind: str, template_data: Dict[str, Any]) -> EmailContent:
    """Render a notification; raises ValueError for an unknown template kind"""
    try:
        builder = TEMPLATES[template_kind]
    except KeyError:
        raise ValueError(f"Unknown email template '{template_kind}'") from None
    return builder(template_data)
