"""
Guardian email notifications.
Renders a test summary (totals + chapter-wise table) and sends it over SMTP.
Sending never raises: callers get True/False.
"""
import html
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable

from tracker.config import Settings
from tracker.models import TestRecord, User

logger = logging.getLogger(__name__)

STYLE = """
body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
.container { max-width: 600px; margin: 0 auto; padding: 20px; }
.header { background: #059669; color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0; }
.content { background: #f9fafb; padding: 20px; border-radius: 0 0 8px 8px; }
.test-info { background: white; padding: 15px; margin: 15px 0; border-left: 4px solid #059669; }
.score { font-size: 24px; font-weight: bold; color: #059669; }
.chapter-table { width: 100%; border-collapse: collapse; margin: 15px 0; }
.chapter-table th, .chapter-table td { padding: 8px; text-align: left; border-bottom: 1px solid #e5e7eb; }
.chapter-table th { background: #f3f4f6; }
.footer { text-align: center; margin-top: 20px; color: #6b7280; font-size: 12px; }
"""


def format_date(date_iso: str) -> str:
    try:
        return datetime.fromisoformat(date_iso.replace("Z", "+00:00")).strftime("%d %b %Y, %H:%M %Z").strip()
    except ValueError:
        return date_iso


def render_text(user: User, record: TestRecord) -> str:
    lines = [
        f"NEET Test Results for {user.name}",
        "",
        f"Subject: {record.subject.value}",
        f"Date: {format_date(record.date_iso)}",
        f"Total Questions: {record.question_count}",
        f"Score: {record.score}",
        "",
        "Performance:",
        f"- Correct: {record.correct}",
        f"- Wrong: {record.wrong}",
        f"- Not Attempted: {record.not_attempted}",
        "",
        "Chapter-wise Performance:",
    ]
    for chapter, stats in record.by_chapter.items():
        lines.append(f"{chapter}: {stats.correct}C, {stats.wrong}W, {stats.not_attempted}NA, Score: {stats.score}")
    lines += ["", "Keep practicing to improve your NEET preparation!"]
    return "\n".join(lines)


def render_html(user: User, record: TestRecord) -> str:
    name = html.escape(user.name)
    rows = "".join(
        f"<tr><td>{html.escape(chapter)}</td><td>{s.correct}</td><td>{s.wrong}</td>"
        f"<td>{s.not_attempted}</td><td>{s.score}</td></tr>"
        for chapter, s in record.by_chapter.items()
    )
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>NEET Test Results - {name}</title><style>{STYLE}</style></head>
<body>
<div class="container">
  <div class="header"><h1>NEET Test Results</h1><p>Test completed by {name}</p></div>
  <div class="content">
    <div class="test-info">
      <h2>Test Summary</h2>
      <p><strong>Subject:</strong> {record.subject.value}</p>
      <p><strong>Date:</strong> {html.escape(format_date(record.date_iso))}</p>
      <p><strong>Total Questions:</strong> {record.question_count}</p>
      <div class="score">Score: {record.score}</div>
    </div>
    <p>Correct: <strong>{record.correct}</strong> &middot; Wrong: <strong>{record.wrong}</strong>
       &middot; Not Attempted: <strong>{record.not_attempted}</strong></p>
    <h3>Chapter-wise Performance</h3>
    <table class="chapter-table">
      <thead><tr><th>Chapter</th><th>Correct</th><th>Wrong</th><th>Not Attempted</th><th>Score</th></tr></thead>
      <tbody>{rows}</tbody>
    </table>
    <div class="footer"><p>Keep practicing to improve your NEET preparation!</p></div>
  </div>
</div>
</body>
</html>"""


def render_welcome(user: User) -> str:
    return "\n".join([
        f"Hello {user.name}!",
        "",
        "Welcome to the NEET Practice Tracker.",
        "",
        "What you can do:",
        "- Log practice tests for Physics, Chemistry and Biology",
        "- Track your performance over time",
        "- See chapter-wise scores for every test",
        "- Email results to a guardian (add a guardian email in your profile)",
        "",
        "Best of luck with your NEET preparation!",
    ])


class Notifier:
    def __init__(self, settings: Settings, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.settings = settings
        self.smtp_factory = smtp_factory

    def _send(self, message: EmailMessage) -> None:
        with self.smtp_factory(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as smtp:
            smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_pass)
            smtp.send_message(message)

    def _message(self, to: str, subject: str, text: str, html_body: str = "") -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.settings.mail_from_name, self.settings.smtp_user))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        return message

    def send_test_results(self, user: User, record: TestRecord) -> bool:
        """Email the test summary to the user's guardian. False if there is none or sending fails."""
        if not user.guardian_email:
            logger.info(f"No guardian email provided for user: {user.email}")
            return False
        try:
            message = self._message(
                user.guardian_email,
                f"NEET Test Results - {user.name} ({record.subject.value})",
                render_text(user, record),
                render_html(user, record),
            )
            self._send(message)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.error(f"Failed to send test results email: {e}")
            return False
        logger.info(f"Test results email for {record.id} sent to {user.guardian_email}")
        return True

    def send_welcome(self, user: User) -> bool:
        try:
            self._send(self._message(user.email, "Welcome to the NEET Practice Tracker!", render_welcome(user)))
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.error(f"Failed to send welcome email: {e}")
            return False
        return True
