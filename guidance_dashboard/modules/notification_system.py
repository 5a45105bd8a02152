"""
Notification System Module - QR Guidance Attendance Dashboard

This module tells parents that their child has checked in. A recorded scan is
announced by SMS (always, when a contact is on file) and by email (only when
an email is on file). Delivery never blocks the scan response and never undoes
the attendance record: each message goes out on a detached task, and a
successful send flips the matching flag on the ledger record.

Features:
- SMS delivery through the Twilio REST API
- Philippine mobile number normalization
- HTML attendance emails rendered from a Jinja2 template, sent over SMTP/STARTTLS
- Pluggable task runners (background threads in production, inline in tests)
"""

import smtplib
import ssl
import threading
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Callable, Dict, Optional
import logging

from jinja2 import Template
from twilio.rest import Client
from twilio.base.exceptions import TwilioException

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = ('', 'YOUR_ACCOUNT_SID_HERE', 'YOUR_AUTH_TOKEN_HERE', 'YOUR_PHONE_NUMBER_HERE')

STATUS_LABELS = {
    'present': ('On Time', '#22c55e'),
    'late': ('Late', '#f59e0b'),
    'absent': ('Absent', '#ef4444'),
}

ATTENDANCE_EMAIL_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Attendance Notification</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #1e3a5f; padding: 24px; text-align: center;">
      <h1 style="color: white; margin: 0; font-size: 22px;">{{ school_name }}</h1>
      <p style="color: #d0dbe8; margin: 8px 0 0 0; font-size: 14px;">Guidance &amp; Attendance</p>
    </div>
    <div style="background: white; padding: 24px;">
      <p style="font-size: 16px;"><strong>{{ student_name }}</strong> has been marked:</p>
      <span style="background: {{ status_color }}; color: white; padding: 6px 14px; border-radius: 16px; font-weight: bold;">
        {{ status_text }}
      </span>
      <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
        <tr><td style="color: #666;">Time of Arrival:</td><td style="text-align: right;"><strong>{{ arrival_time or '-' }}</strong></td></tr>
        <tr><td style="color: #666;">Grade Level:</td><td style="text-align: right;"><strong>Grade {{ grade }}</strong></td></tr>
        <tr><td style="color: #666;">Section:</td><td style="text-align: right;"><strong>{{ section }}</strong></td></tr>
      </table>
      <p style="color: #888; font-size: 12px; text-align: center;">
        This is an automated message from {{ school_name }} Guidance &amp; Attendance.<br>
        Please do not reply to this email.
      </p>
    </div>
  </div>
</body>
</html>
"""


def normalize_phone_number(contact: str) -> str:
    """
    Convert a local Philippine mobile number to E.164.

    "0917 123 4567" -> "+639171234567", "9171234567" -> "+639171234567";
    numbers already starting with "+" are only stripped of spaces and dashes.
    """
    number = ''.join(contact.split()).replace('-', '')
    if number.startswith('0'):
        return '+63' + number[1:]
    if not number.startswith('+'):
        return '+63' + number
    return number


def status_text(status: str) -> str:
    return STATUS_LABELS.get(status, STATUS_LABELS['absent'])[0]


def render_attendance_email(student_name: str, arrival_time: Optional[str], grade: str,
                            section: str, status: str, school_name: str = 'KNHS') -> str:
    """Render the HTML body of a parent attendance email."""
    text, color = STATUS_LABELS.get(status, STATUS_LABELS['absent'])
    return Template(ATTENDANCE_EMAIL_TEMPLATE).render(
        school_name=school_name,
        student_name=student_name,
        arrival_time=arrival_time,
        grade=grade,
        section=section,
        status_text=text,
        status_color=color
    )


class SmsDispatcher:
    """
    Sends SMS through Twilio. Missing or placeholder credentials disable delivery.
    """

    def __init__(self, account_sid: str = '', auth_token: str = '', from_number: str = '',
                 client_factory: Callable[[str, str], Any] = Client):
        self.account_sid = account_sid or ''
        self.auth_token = auth_token or ''
        self.from_number = from_number or ''
        self.client_factory = client_factory
        self._client = None
        self.logger = logging.getLogger(__name__)

    def is_configured(self) -> bool:
        return all(value not in PLACEHOLDER_VALUES
                   for value in (self.account_sid, self.auth_token, self.from_number))

    def _get_client(self):
        if self._client is None:
            self._client = self.client_factory(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, contact: str, message: str) -> bool:
        """
        Send a text message to a parent.

        Args:
            contact (str): Parent phone number in local or international form
            message (str): Message body

        Returns:
            bool: True if Twilio accepted the message
        """
        if not contact:
            self.logger.warning("No contact number on file, SMS not sent")
            return False

        if not self.is_configured():
            self.logger.info(f"Twilio not configured, SMS to {contact} not sent")
            return False

        to_number = normalize_phone_number(contact)
        try:
            result = self._get_client().messages.create(
                body=message,
                from_=self.from_number,
                to=to_number
            )
        except TwilioException as e:
            self.logger.error(f"SMS sending error to {to_number}: {str(e)}")
            return False
        except Exception as e:
            # transport failures from the HTTP client are not wrapped by Twilio
            self.logger.error(f"SMS delivery to {to_number} failed: {str(e)}")
            return False

        if getattr(result, 'sid', None):
            self.logger.info(f"SMS sent to {to_number}: {result.sid}")
            return True

        self.logger.error(f"SMS failed to {to_number}")
        return False


class EmailDispatcher:
    """
    Sends HTML email over SMTP with STARTTLS.
    """

    def __init__(self, smtp_server: str = '', smtp_port: int = 587, username: str = '',
                 password: str = '', sender: str = '', use_tls: bool = True):
        self.email_config = {
            'smtp_server': smtp_server,
            'smtp_port': smtp_port,
            'username': username,
            'password': password,
            'sender': sender or username,
            'use_tls': use_tls
        }
        self.logger = logging.getLogger(__name__)

    def is_configured(self) -> bool:
        """Check if email configuration is complete."""
        return all([
            self.email_config['username'],
            self.email_config['password'],
            self.email_config['smtp_server']
        ])

    def send_email(self, to: str, subject: str, html: str) -> bool:
        """
        Send an HTML email.

        Returns:
            bool: True if the SMTP server accepted the message
        """
        if not self.is_configured():
            self.logger.info(f"Email not configured, email to {to} not sent")
            return False

        msg = MIMEMultipart()
        msg['From'] = self.email_config['sender']
        msg['To'] = to
        msg['Subject'] = subject
        msg.attach(MIMEText(html, 'html'))

        try:
            with smtplib.SMTP(self.email_config['smtp_server'], self.email_config['smtp_port']) as server:
                if self.email_config['use_tls']:
                    context = ssl.create_default_context()
                    server.starttls(context=context)

                server.login(self.email_config['username'], self.email_config['password'])
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error(f"Failed to send email to {to}: {str(e)}")
            return False

        self.logger.info(f"Email sent to {to}")
        return True


class TaskRunner:
    """Runs notification work outside the request that triggered it."""

    def submit(self, func: Callable, *args, **kwargs) -> None:
        raise NotImplementedError

    @staticmethod
    def _run_isolated(func: Callable, *args, **kwargs) -> None:
        try:
            func(*args, **kwargs)
        except Exception as e:
            # background failures never reach the scanner
            logger.error(f"Background task {getattr(func, '__name__', func)} failed: {str(e)}")


class ThreadTaskRunner(TaskRunner):
    """Fire-and-forget daemon threads. The caller never joins them."""

    def submit(self, func: Callable, *args, **kwargs) -> None:
        worker = threading.Thread(
            target=self._run_isolated,
            args=(func,) + args,
            kwargs=kwargs,
            daemon=True
        )
        worker.start()


class InlineTaskRunner(TaskRunner):
    """Runs tasks synchronously in the calling thread."""

    def submit(self, func: Callable, *args, **kwargs) -> None:
        self._run_isolated(func, *args, **kwargs)


class NotificationSystem:
    """
    Dispatches parent notifications for recorded attendance.
    """

    def __init__(self, ledger, sms_dispatcher: SmsDispatcher, email_dispatcher: EmailDispatcher,
                 task_runner: Optional[TaskRunner] = None, school_name: str = 'KNHS',
                 enabled: bool = True):
        self.ledger = ledger
        self.sms = sms_dispatcher
        self.email = email_dispatcher
        self.task_runner = task_runner or ThreadTaskRunner()
        self.school_name = school_name
        self.enabled = enabled
        self.logger = logging.getLogger(__name__)

    def format_sms(self, record) -> str:
        return (f"{record.student_name} is arrived at {record.time_in}. "
                f"Grade {record.grade} - {record.section}. - {self.school_name} Guidance")

    def format_subject(self, record) -> str:
        return f"{self.school_name} Attendance: {record.student_name} - {status_text(record.status)}"

    def dispatch_attendance(self, record, student) -> Dict[str, bool]:
        """
        Queue the SMS and email for a newly recorded attendance.

        Args:
            record (AttendanceRecord): The stored attendance record
            student (Student): The student it belongs to

        Returns:
            Dict[str, bool]: Which channels were queued
        """
        queued = {'sms': False, 'email': False}
        if not self.enabled:
            self.logger.info("Notifications disabled, skipping dispatch")
            return queued

        self.task_runner.submit(self._send_sms, record, student.parent_contact)
        queued['sms'] = True

        if student.parent_email:
            self.task_runner.submit(self._send_email, record, student.parent_email)
            queued['email'] = True

        return queued

    def _send_sms(self, record, contact: str) -> None:
        if self.sms.send_sms(contact, self.format_sms(record)):
            self.ledger.set_sms_notified(record.id, True)

    def _send_email(self, record, to: str) -> None:
        html = render_attendance_email(
            record.student_name, record.time_in, record.grade, record.section,
            record.status, school_name=self.school_name
        )
        if self.email.send_email(to, self.format_subject(record), html):
            self.ledger.set_email_notified(record.id, True)
