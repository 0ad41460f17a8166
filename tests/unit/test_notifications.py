"""
Unit tests for email rendering and the notification gateway
"""

from datetime import date

import pytest

from tutorly.errors import UpstreamFailure
from tutorly.services.email_templates import TemplateKind, render_email
from tutorly.services.notifications import Delivery, EmailNotifier, deliver_all, format_session_date
from tests.helpers import RecordingNotifier


class FakeMailer:
    def __init__(self, error=None):
        self.messages = []
        self.error = error

    async def send_message(self, message):
        if self.error:
            raise self.error
        self.messages.append(message)


class TestTemplates:
    def test_cancellation_for_student_mentions_refund_and_reason(self):
        content = render_email(TemplateKind.CANCELLATION, {
            "type": "student",
            "student_name": "Nimal",
            "tutor_name": "Kumari",
            "session_date": "January 10, 2025",
            "reason": "Tutor unwell",
            "refund_amount": 2500,
        })

        assert content.subject == "Session Cancellation Notice"
        assert "Rs. 2500" in content.text
        assert "Tutor unwell" in content.text
        assert "Dear Nimal" in content.text

    def test_cancellation_for_tutor_omits_refund_paragraph(self):
        content = render_email(TemplateKind.CANCELLATION, {
            "type": "tutor",
            "student_name": "Nimal",
            "tutor_name": "Kumari",
        })

        assert "Dear Kumari" in content.text
        assert "will be processed" not in content.text

    def test_auto_cancellation_subject(self):
        content = render_email(TemplateKind.AUTO_CANCELLATION, {"type": "student"})
        assert content.subject == "Session Auto-Cancelled - Immediate Action Required"

    def test_completion_subject(self):
        content = render_email(TemplateKind.COMPLETION, {"type": "tutor"})
        assert content.subject == "Session Completed Successfully"

    def test_reminder_includes_join_link(self):
        content = render_email(TemplateKind.SESSION_REMINDER, {
            "type": "tutor",
            "student_name": "3 students",
            "tutor_name": "Kumari",
            "session_date": "January 10, 2025",
            "session_time": "3:00 PM",
            "reminder_time": "1 hour",
            "meeting_link": "https://zoom.us/s/1?zak=z",
        })

        assert content.subject == "Session Reminder - 1 hour"
        assert "https://zoom.us/s/1?zak=z" in content.text
        assert "Join Session" in content.html
        assert "3 students" in content.text

    def test_html_escapes_names(self):
        content = render_email(TemplateKind.COMPLETION, {"type": "student", "student_name": "<b>x</b>"})
        assert "<b>x</b>" not in content.html

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            render_email("booking_confirmation", {})

    def test_session_date_format(self):
        assert format_session_date(date(2025, 1, 10)) == "January 10, 2025"
        assert format_session_date(None) == "N/A"


class TestEmailNotifier:
    async def test_sends_rendered_message(self):
        mailer = FakeMailer()
        notifier = EmailNotifier(mailer=mailer)

        await notifier.send("nimal@tutorly.lk", TemplateKind.COMPLETION, {"type": "student"})

        message, = mailer.messages
        assert message.subject == "Session Completed Successfully"
        assert "nimal@tutorly.lk" in str(message.recipients[0])

    async def test_transport_error_becomes_upstream_failure(self):
        notifier = EmailNotifier(mailer=FakeMailer(error=ConnectionError("SMTP down")))

        with pytest.raises(UpstreamFailure):
            await notifier.send("nimal@tutorly.lk", TemplateKind.COMPLETION, {"type": "student"})

    async def test_missing_recipient(self):
        notifier = EmailNotifier(mailer=FakeMailer())

        with pytest.raises(UpstreamFailure):
            await notifier.send(None, TemplateKind.COMPLETION, {"type": "student"})


class TestDeliverAll:
    async def test_one_failure_does_not_stop_the_rest(self):
        notifier = RecordingNotifier(fail_for={"b@tutorly.lk"})
        deliveries = [
            Delivery("s1", email, "student", TemplateKind.COMPLETION, {"type": "student"})
            for email in ("a@tutorly.lk", "b@tutorly.lk", "c@tutorly.lk")
        ]

        results = await deliver_all(notifier, deliveries)

        assert [r.ok for r in results] == [True, False, True]
        assert notifier.recipients == ["a@tutorly.lk", "c@tutorly.lk"]
        assert "b@tutorly.lk" in results[1].error

    async def test_unexpected_error_is_recorded_and_the_rest_still_run(self):
        class BrokenTemplateNotifier(RecordingNotifier):
            async def send(self, recipient, template_kind, template_data):
                if recipient == "a@tutorly.lk":
                    raise RuntimeError("template variable missing")
                await super().send(recipient, template_kind, template_data)

        notifier = BrokenTemplateNotifier()
        deliveries = [
            Delivery("s1", email, "student", TemplateKind.COMPLETION, {"type": "student"})
            for email in ("a@tutorly.lk", "b@tutorly.lk")
        ]

        results = await deliver_all(notifier, deliveries)

        assert [r.ok for r in results] == [False, True]
        assert results[0].error == "template variable missing"
        assert notifier.recipients == ["b@tutorly.lk"]
