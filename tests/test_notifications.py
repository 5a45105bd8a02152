import threading
from types import SimpleNamespace

import pytest
import requests
from twilio.base.exceptions import TwilioRestException

from guidance_dashboard.modules import notification_system
from guidance_dashboard.modules.notification_system import (
    EmailDispatcher, InlineTaskRunner, NotificationSystem, SmsDispatcher, ThreadTaskRunner,
    normalize_phone_number, render_attendance_email
)


class FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, **kwargs):
        if self.error:
            raise self.error
        self.created.append(kwargs)
        return SimpleNamespace(sid='SM123')


def _sms(messages):
    client = SimpleNamespace(messages=messages)
    return SmsDispatcher('AC123', 'token', '+15005550006', client_factory=lambda sid, token: client)


@pytest.mark.parametrize('raw, expected', [
    ('09171234567', '+639171234567'),
    ('0917 123-4567', '+639171234567'),
    ('9171234567', '+639171234567'),
    ('+639171234567', '+639171234567'),
])
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


def test_send_sms_uses_normalized_number():
    messages = FakeMessages()

    assert _sms(messages).send_sms('0917 123 4567', 'hello') is True
    assert messages.created == [{'body': 'hello', 'from_': '+15005550006', 'to': '+639171234567'}]


def test_send_sms_without_credentials():
    sms = SmsDispatcher('YOUR_ACCOUNT_SID_HERE', 'token', '+15005550006')

    assert sms.is_configured() is False
    assert sms.send_sms('09171234567', 'hello') is False


def test_send_sms_swallows_twilio_errors():
    messages = FakeMessages(error=TwilioRestException(400, '/Messages', 'invalid number'))

    assert _sms(messages).send_sms('09171234567', 'hello') is False


def test_send_sms_survives_unreachable_api():
    messages = FakeMessages(error=requests.exceptions.ConnectionError('api.twilio.com unreachable'))

    assert _sms(messages).send_sms('09171234567', 'hello') is False


def test_send_email_unconfigured():
    assert EmailDispatcher().send_email('parent@example.com', 'subject', '<p>x</p>') is False


def test_send_email_over_starttls(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port):
            sent.append(('connect', host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self, context=None):
            sent.append(('starttls',))

        def login(self, username, password):
            sent.append(('login', username))

        def send_message(self, msg):
            sent.append(('send', msg['To'], msg['Subject']))

    monkeypatch.setattr(notification_system.smtplib, 'SMTP', FakeSMTP)
    email = EmailDispatcher('smtp.example.com', 587, 'guidance@example.com', 'secret')

    assert email.send_email('parent@example.com', 'KNHS Attendance', '<p>x</p>') is True
    assert sent == [
        ('connect', 'smtp.example.com', 587),
        ('starttls',),
        ('login', 'guidance@example.com'),
        ('send', 'parent@example.com', 'KNHS Attendance'),
    ]


def test_render_attendance_email():
    html = render_attendance_email('Dela Cruz, Ana', '07:05 AM', '7', 'Love', 'late', school_name='KNHS')

    assert 'Dela Cruz, Ana' in html
    assert 'Late' in html
    assert '07:05 AM' in html
    assert 'Grade 7' in html


def test_thread_runner_isolates_failures():
    done = threading.Event()

    def boom():
        done.set()
        raise RuntimeError('smtp down')

    ThreadTaskRunner().submit(boom)

    assert done.wait(timeout=5)


def test_inline_runner_logs_failures(caplog):
    def boom():
        raise RuntimeError('smtp down')

    InlineTaskRunner().submit(boom)

    assert 'smtp down' in caplog.text


def test_disabled_notifier_sends_nothing(ledger):
    sms = SimpleNamespace(send_sms=lambda contact, message: pytest.fail('sms sent'))
    email = SimpleNamespace(send_email=lambda to, subject, html: pytest.fail('email sent'))
    notifier = NotificationSystem(ledger, sms, email, task_runner=InlineTaskRunner(), enabled=False)
    record = SimpleNamespace(id=1, student_name='Ana', time_in='06:30 AM', grade='7', section='Love', status='present')
    student = SimpleNamespace(parent_contact='09171234567', parent_email='a@example.com')

    assert notifier.dispatch_attendance(record, student) == {'sms': False, 'email': False}


def test_email_skipped_without_address(ledger):
    emails = []
    sms = SimpleNamespace(send_sms=lambda contact, message: False)
    email = SimpleNamespace(send_email=lambda to, subject, html: emails.append(to))
    notifier = NotificationSystem(ledger, sms, email, task_runner=InlineTaskRunner())
    record = SimpleNamespace(id=1, student_name='Ana', time_in='06:30 AM', grade='7', section='Love', status='present')
    student = SimpleNamespace(parent_contact='09171234567', parent_email='')

    assert notifier.dispatch_attendance(record, student) == {'sms': True, 'email': False}
    assert emails == []
