import json
from datetime import datetime

import pytest

from app import create_app
from config import TestingConfig
from guidance_dashboard.modules.clock import CivilClock
from guidance_dashboard.modules.database_manager import DatabaseManager
from guidance_dashboard.modules.student_manager import SeedRoster, DynamicStudentStore, StudentDirectory
from guidance_dashboard.modules.attendance_ledger import AttendanceLedger
from guidance_dashboard.modules.attendance_manager import AttendanceManager
from guidance_dashboard.modules.notification_system import NotificationSystem, InlineTaskRunner
from guidance_dashboard.modules.report_generator import ReportGenerator

# Monday morning in Manila
DEFAULT_NOW = datetime(2025, 6, 16, 6, 30)

SEED_FILES = {
    'g7.json': {
        'grade': '7',
        'section': 'Love',
        'students': [
            {'name': 'Dela Cruz, Ana', 'gender': 'female', 'lrn': '108234560001',
             'contact': '09171234567', 'email': 'ana.parent@example.com'},
            {'name': 'Reyes, Miguel', 'gender': 'male', 'lrn': '108234560002',
             'contact': '09181234567', 'email': ''},
        ],
    },
    'g9.json': {
        'grade': '9',
        'section': 'Peace',
        'students': [
            {'name': 'Juan Dela Cruz', 'gender': 'male', 'lrn': '108234560201',
             'contact': '09211234567', 'email': ''},
        ],
    },
}


class PinnedTime:
    """Settable stand-in for the wall clock."""

    def __init__(self, current=DEFAULT_NOW):
        self.current = current

    def set(self, hour, minute, day=None):
        self.current = self.current.replace(hour=hour, minute=minute, day=day or self.current.day)

    def __call__(self):
        return self.current


class FakeSms:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_sms(self, contact, message):
        self.sent.append((contact, message))
        return self.succeed


class FakeEmail:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_email(self, to, subject, html):
        self.sent.append((to, subject, html))
        return self.succeed


@pytest.fixture()
def roster_dir(tmp_path):
    directory = tmp_path / 'student'
    directory.mkdir()
    for filename, content in SEED_FILES.items():
        (directory / filename).write_text(json.dumps(content), encoding='utf-8')
    return directory


@pytest.fixture()
def pinned_time():
    return PinnedTime()


@pytest.fixture()
def clock(pinned_time):
    return CivilClock('Asia/Manila', now_func=pinned_time)


@pytest.fixture()
def db(tmp_path):
    manager = DatabaseManager(tmp_path / 'attendance.db')
    yield manager
    manager.close_all_connections()


@pytest.fixture()
def directory(roster_dir, db):
    return StudentDirectory(SeedRoster(roster_dir), DynamicStudentStore(db))


@pytest.fixture()
def ledger(db):
    return AttendanceLedger(db)


@pytest.fixture()
def fake_sms():
    return FakeSms()


@pytest.fixture()
def fake_email():
    return FakeEmail()


@pytest.fixture()
def notifier(ledger, fake_sms, fake_email):
    return NotificationSystem(ledger, fake_sms, fake_email, task_runner=InlineTaskRunner())


@pytest.fixture()
def manager(directory, ledger, clock, notifier):
    return AttendanceManager(directory, ledger, clock, notifier)


@pytest.fixture()
def reports(directory, ledger, clock, tmp_path):
    return ReportGenerator(directory, ledger, clock, output_dir=str(tmp_path / 'exports'))


@pytest.fixture()
def make_app(tmp_path, roster_dir, clock, fake_sms, fake_email):
    created = []

    def _make(**settings):
        overrides = {
            'DATABASE_PATH': str(tmp_path / 'app.db'),
            'ROSTER_DIR': str(roster_dir),
            'EXPORTS_FOLDER': str(tmp_path / 'exports'),
            'LOG_FILE': str(tmp_path / 'logs' / 'attendance.log'),
            'NOTIFICATIONS_ENABLED': True,
        }
        overrides.update(settings)
        app = create_app(
            TestingConfig,
            config_overrides=overrides,
            clock=clock,
            task_runner=InlineTaskRunner(),
            sms_dispatcher=fake_sms,
            email_dispatcher=fake_email
        )
        created.append(app)
        return app

    yield _make

    for app in created:
        app.extensions['guidance_dashboard']['db'].close_all_connections()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def services(app):
    return app.extensions['guidance_dashboard']
