import json
import threading

import pytest

from guidance_dashboard.modules.errors import StudentNotFound, UpstreamUnavailable
from guidance_dashboard.modules.qr_generator import build_payload
from guidance_dashboard.modules.student_manager import Student, student_identity

ANA_PAYLOAD = json.dumps({'n': 'Dela Cruz, Ana', 'g': '7', 's': 'Love', 'c': '09171234567'})
NEW_PAYLOAD = json.dumps({'n': 'New Student', 'g': '8', 's': 'Joy', 'c': '09180000000'})


@pytest.mark.parametrize('hour, minute, expected', [
    (5, 0, 'present'),
    (6, 59, 'present'),
    (7, 0, 'late'),
    (7, 16, 'late'),
    (23, 59, 'late'),
])
def test_classification_boundary(manager, pinned_time, hour, minute, expected):
    pinned_time.set(hour, minute)

    result = manager.process_attendance_scan(ANA_PAYLOAD)

    assert result['success'] is True
    assert result['attendance']['status'] == expected


def test_classify_never_returns_absent(manager):
    assert {manager.classify(m) for m in range(0, 24 * 60)} == {'present', 'late'}


def test_seeded_student_scanned_twice(manager, pinned_time, ledger):
    pinned_time.set(6, 30)
    first = manager.process_attendance_scan(ANA_PAYLOAD)

    pinned_time.set(6, 45)
    second = manager.process_attendance_scan(ANA_PAYLOAD)

    assert first['already_scanned'] is False
    assert first['attendance']['status'] == 'present'
    assert first['attendance']['time_in'] == '06:30 AM'
    assert second['already_scanned'] is True
    assert second['attendance']['id'] == first['attendance']['id']
    assert second['attendance']['status'] == 'present'
    assert second['attendance']['time_in'] == '06:30 AM'
    assert len(ledger.by_date('2025-06-16')) == 1


def test_repeat_scan_reports_stored_notification_flags(manager, fake_sms):
    manager.process_attendance_scan(ANA_PAYLOAD)
    second = manager.process_attendance_scan(ANA_PAYLOAD)

    assert len(fake_sms.sent) == 1
    assert second['sms_sent'] is True


def test_unseeded_student_is_created(manager, pinned_time, directory, reports):
    before = reports.today_stats()['total_students']
    pinned_time.set(7, 10)

    result = manager.process_attendance_scan(NEW_PAYLOAD)

    identity = student_identity('8', 'Joy', 'New Student')
    created = directory.resolve(identity)
    assert created.source == 'dynamic'
    assert created.gender == 'rather_not_say'
    assert created.qr_data == NEW_PAYLOAD
    assert result['attendance']['status'] == 'late'
    assert reports.today_stats()['total_students'] == before + 1


def test_same_student_on_next_day_gets_new_record(manager, pinned_time):
    first = manager.process_attendance_scan(ANA_PAYLOAD)
    pinned_time.set(6, 40, day=17)

    second = manager.process_attendance_scan(ANA_PAYLOAD)

    assert second['already_scanned'] is False
    assert second['attendance']['date'] == '2025-06-17'
    assert second['attendance']['id'] != first['attendance']['id']


@pytest.mark.parametrize('payload', [None, '', 'not json', '[1, 2]', json.dumps({'n': 'Ana', 'g': '7'})])
def test_malformed_payload_is_rejected(manager, ledger, payload):
    result = manager.process_attendance_scan(payload)

    assert result['success'] is False
    assert result['error_type'] == 'malformed_payload'
    assert ledger.by_date('2025-06-16') == []


def test_seed_precedence_on_scan(manager, directory):
    identity = student_identity('9', 'Peace', 'Juan Dela Cruz')
    directory.upsert(Student(
        student_id=identity, name='Juan Dela Cruz', grade='9', section='Peace',
        parent_contact='09000000000', qr_data='{}'
    ))

    result = manager.process_attendance_scan(
        json.dumps({'n': 'Juan  Dela Cruz', 'g': '9', 's': 'Peace', 'c': '09000000000'})
    )

    assert result['student']['parent_contact'] == '09211234567'
    assert directory.resolve(identity).parent_contact == '09211234567'
    assert [s.parent_contact for s in directory.list_by_grade('9')] == ['09211234567']


def test_generated_payload_round_trips_to_identity(manager, directory):
    student = directory.enroll({
        'name': 'Bautista, Leo', 'grade': '10', 'section': 'Hope', 'parent_contact': '09175550000'
    })

    result = manager.process_attendance_scan(build_payload(student.to_dict()))

    assert result['student']['student_id'] == student.student_id
    assert directory.dynamic.count() == 1


def test_notifications_flip_flags(manager, ledger, fake_sms, fake_email):
    result = manager.process_attendance_scan(ANA_PAYLOAD)

    record = ledger.get(result['attendance']['id'])
    assert fake_sms.sent[0][0] == '09171234567'
    assert fake_sms.sent[0][1] == 'Dela Cruz, Ana is arrived at 06:30 AM. Grade 7 - Love. - KNHS Guidance'
    assert fake_email.sent[0][1] == 'KNHS Attendance: Dela Cruz, Ana - On Time'
    assert record.sms_notified is True
    assert record.email_notified is True
    # the response reflects the record as it was stored
    assert result['sms_sent'] is False


def test_notification_failure_keeps_record(manager, ledger, fake_sms):
    fake_sms.succeed = False

    result = manager.process_attendance_scan(ANA_PAYLOAD)

    assert result['success'] is True
    assert ledger.get(result['attendance']['id']).sms_notified is False


def test_concurrent_scans_record_once(manager, ledger):
    barrier = threading.Barrier(6)
    results = []

    def scan():
        barrier.wait()
        results.append(manager.process_attendance_scan(ANA_PAYLOAD))

    threads = [threading.Thread(target=scan) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(ledger.by_date('2025-06-16')) == 1
    assert sum(1 for r in results if not r['already_scanned']) == 1


def test_mark_absent(manager, ledger):
    record = manager.mark_absent('7-Love-Reyes,Miguel')

    assert record.status == 'absent'
    assert record.time_in is None
    assert manager.mark_absent('7-Love-Reyes,Miguel').id == record.id
    assert len(ledger.by_student('7-Love-Reyes,Miguel')) == 1


def test_mark_absent_unknown_student(manager):
    with pytest.raises(StudentNotFound):
        manager.mark_absent('7-Love-Nobody')


def test_reset_all(manager, directory, ledger):
    manager.process_attendance_scan(NEW_PAYLOAD)

    counts = manager.reset_all()

    assert counts == {'attendance_deleted': 1, 'students_deleted': 1}
    assert directory.count() == 3


def _failing_append(record):
    raise UpstreamUnavailable('Database unavailable: disk I/O error')


def test_storage_failure_rejects_scan(manager, ledger, fake_sms, monkeypatch):
    monkeypatch.setattr(ledger, 'append', _failing_append)

    result = manager.process_attendance_scan(ANA_PAYLOAD)

    assert result['success'] is False
    assert result['error_type'] == 'upstream_unavailable'
    assert ledger.by_date('2025-06-16') == []
    assert fake_sms.sent == []


def test_storage_failure_keeps_no_new_student(manager, directory, ledger, monkeypatch):
    monkeypatch.setattr(ledger, 'append', _failing_append)

    result = manager.process_attendance_scan(NEW_PAYLOAD)

    assert result['error_type'] == 'upstream_unavailable'
    assert directory.dynamic.count() == 0
    assert directory.resolve('8-Joy-NewStudent') is None


def test_storage_failure_keeps_enrolled_student(manager, directory, ledger, monkeypatch):
    directory.enroll({'name': 'New Student', 'grade': '8', 'section': 'Joy', 'parent_contact': '09180000000'})
    monkeypatch.setattr(ledger, 'append', _failing_append)

    result = manager.process_attendance_scan(NEW_PAYLOAD)

    assert result['success'] is False
    assert directory.dynamic.count() == 1
