"""
Attendance Manager Module - QR Guidance Attendance Dashboard

This module turns a scanned QR payload into at most one attendance record per
student per day.

A scan runs through these steps:
1. decode the payload
2. derive the student identity
3. resolve the student, or enroll them from the payload
4. classify the check-in as present or late against the on-time cutoff
5. return the existing record if the student already scanned today
6. otherwise append a new record and queue parent notifications

Features:
- QR scan processing with duplicate suppression
- Time-of-day status classification
- Per-student-per-day locking so concurrent scans record once
- Manual absent marking
- Global reset of dynamic data
"""

import threading
from typing import Any, Dict, Optional, Tuple
import logging

from guidance_dashboard.modules.errors import AttendanceError, StudentNotFound
from guidance_dashboard.modules.qr_generator import decode_payload
from guidance_dashboard.modules.student_manager import Student, student_identity
from guidance_dashboard.modules.attendance_ledger import (
    AttendanceRecord, STATUS_PRESENT, STATUS_LATE, STATUS_ABSENT
)

# 07:00 in minutes after midnight
DEFAULT_ON_TIME_CUTOFF = 420

# a (student, date) pair always maps to the same lock
SCAN_LOCK_STRIPES = 64


class AttendanceManager:
    """
    Scan intake pipeline over the student directory and the attendance ledger.
    """

    def __init__(self, directory, ledger, clock, notifier=None,
                 on_time_cutoff: int = DEFAULT_ON_TIME_CUTOFF):
        """
        Args:
            directory (StudentDirectory): Merged seed/dynamic student lookup
            ledger (AttendanceLedger): Attendance record store
            clock (CivilClock): School-timezone clock
            notifier (NotificationSystem): Parent notification dispatcher
            on_time_cutoff (int): Minutes after midnight from which a scan is late
        """
        self.directory = directory
        self.ledger = ledger
        self.clock = clock
        self.notifier = notifier
        self.on_time_cutoff = on_time_cutoff
        self.logger = logging.getLogger(__name__)

        self._scan_locks = [threading.Lock() for _ in range(SCAN_LOCK_STRIPES)]

    def classify(self, total_minutes: int) -> str:
        """Status for a check-in at the given minute of the day."""
        return STATUS_PRESENT if total_minutes < self.on_time_cutoff else STATUS_LATE

    def _lock_for(self, identity: str, date: str) -> threading.Lock:
        return self._scan_locks[hash((identity, date)) % SCAN_LOCK_STRIPES]

    def _resolve_or_create(self, identity: str, fields: Dict[str, str], raw_payload: str) -> Tuple[Student, bool]:
        student = self.directory.resolve(identity)
        if student is not None:
            return student, False

        self.logger.info(f"Student {identity} not in directory, enrolling from scan")
        return self.directory.upsert(Student(
            student_id=identity,
            name=fields['name'],
            gender=fields['gender'],
            grade=fields['grade'],
            section=fields['section'],
            lrn=fields['lrn'],
            parent_contact=fields['parent_contact'],
            parent_email=fields['parent_email'],
            qr_data=raw_payload
        )), True

    def process_attendance_scan(self, qr_data: Any) -> Dict[str, Any]:
        """
        Process a QR code scan for attendance recording.

        Args:
            qr_data (Any): Raw text read from the QR code

        Returns:
            Dict[str, Any]: Scan processing result. On success it carries the
            attendance record, the student, and whether the scan was a repeat.
        """
        try:
            fields = decode_payload(qr_data)
            identity = student_identity(fields['grade'], fields['section'], fields['name'])

            now = self.clock.now()
            status = self.classify(now.total_minutes)

            with self._lock_for(identity, now.date):
                student, created = self._resolve_or_create(identity, fields, qr_data)

                try:
                    existing = self.ledger.find_for_student_on(identity, now.date)
                    if existing is not None:
                        self.logger.info(f"Duplicate scan for {identity} on {now.date}, returning existing record")
                        return {
                            'success': True,
                            'message': f"{student.name} already scanned today",
                            'attendance': existing.to_dict(),
                            'student': student.to_dict(),
                            'already_scanned': True,
                            'sms_sent': existing.sms_notified,
                            'email_sent': existing.email_notified
                        }

                    record = self.ledger.append(AttendanceRecord(
                        student_id=identity,
                        student_name=student.name,
                        grade=student.grade,
                        section=student.section,
                        date=now.date,
                        time_in=now.time,
                        status=status
                    ))
                except AttendanceError:
                    if created:
                        # a failed scan leaves no student behind either
                        self.directory.discard(identity)
                    raise

        except AttendanceError as e:
            self.logger.error(f"Attendance scan rejected ({e.error_type}): {e.message}")
            return {
                'success': False,
                'message': e.message,
                'error_type': e.error_type
            }

        queued = {'sms': False, 'email': False}
        if self.notifier is not None:
            queued = self.notifier.dispatch_attendance(record, student)

        self.logger.info(f"Attendance recorded: Student {identity}, Status: {status}")
        return {
            'success': True,
            'message': f"Attendance recorded successfully for {student.name}",
            'attendance': record.to_dict(),
            'student': student.to_dict(),
            'already_scanned': False,
            'sms_sent': record.sms_notified,
            'email_sent': record.email_notified,
            'notifications_queued': queued
        }

    def mark_absent(self, identity: str, date: Optional[str] = None) -> AttendanceRecord:
        """
        Record a student as absent for a day without a scan.

        Args:
            identity (str): Student identity
            date (str): Civil date, defaults to today

        Returns:
            AttendanceRecord: The new absent record, or the day's existing record

        Raises:
            StudentNotFound: If no student has this identity
        """
        student = self.directory.resolve(identity)
        if student is None:
            raise StudentNotFound(f"Student not found: {identity}")

        date = date or self.clock.today()
        with self._lock_for(identity, date):
            existing = self.ledger.find_for_student_on(identity, date)
            if existing is not None:
                self.logger.info(f"{identity} already has a {existing.status} record on {date}")
                return existing

            record = self.ledger.append(AttendanceRecord(
                student_id=identity,
                student_name=student.name,
                grade=student.grade,
                section=student.section,
                date=date,
                time_in=None,
                status=STATUS_ABSENT
            ))

        self.logger.info(f"Marked {identity} absent on {date}")
        return record

    def reset_all(self) -> Dict[str, int]:
        """Wipe the attendance ledger and every dynamic student."""
        attendance_deleted = self.ledger.clear()
        students_deleted = self.directory.reset()
        self.logger.warning(
            f"Reset: removed {attendance_deleted} attendance records and {students_deleted} students"
        )
        return {
            'attendance_deleted': attendance_deleted,
            'students_deleted': students_deleted
        }
