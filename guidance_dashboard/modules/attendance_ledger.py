"""
Attendance Ledger Module - QR Guidance Attendance Dashboard

Append-only store of attendance records. The ledger itself enforces no
uniqueness; the scan pipeline guarantees at most one record per student per
day before appending.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import logging

STATUS_PRESENT = 'present'
STATUS_LATE = 'late'
STATUS_ABSENT = 'absent'
STATUS_PENDING = 'pending'
STATUS_UNMARKED = 'unmarked'


@dataclass
class AttendanceRecord:
    """Data class for attendance record structure."""
    student_id: str
    student_name: str
    grade: str
    section: str
    date: str
    time_in: Optional[str]
    status: str
    sms_notified: bool = False
    email_notified: bool = False
    id: Optional[int] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'AttendanceRecord':
        return cls(
            id=row['id'],
            student_id=row['student_id'],
            student_name=row['student_name'],
            grade=row['grade'],
            section=row['section'],
            date=row['date'],
            time_in=row['time_in'],
            status=row['status'],
            sms_notified=bool(row['sms_notified']),
            email_notified=bool(row['email_notified']),
            created_at=row.get('created_at')
        )


class AttendanceLedger:
    """
    SQLite-backed attendance ledger.
    """

    # insertion order breaks ties between records created in the same second
    NEWEST_FIRST = "ORDER BY created_at DESC, id DESC"

    def __init__(self, database_manager):
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def _select(self, where: str, params: tuple, order: str = NEWEST_FIRST) -> List[AttendanceRecord]:
        rows = self.db.execute_query(f"SELECT * FROM attendance WHERE {where} {order}", params)
        return [AttendanceRecord.from_row(row) for row in rows]

    def append(self, record: AttendanceRecord) -> AttendanceRecord:
        """
        Store a new attendance record.

        Args:
            record (AttendanceRecord): Record without an id

        Returns:
            AttendanceRecord: The stored record with id and created_at populated
        """
        record_id = self.db.execute_update(
            """INSERT INTO attendance (student_id, student_name, grade, section, date,
                                       time_in, status, sms_notified, email_notified)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (record.student_id, record.student_name, record.grade, record.section,
             record.date, record.time_in, record.status,
             int(bool(record.sms_notified)), int(bool(record.email_notified)))
        )

        stored = self.get(record_id)
        self.logger.info(f"Attendance recorded: {record.student_id} on {record.date} ({record.status})")
        return stored

    def get(self, record_id: int) -> Optional[AttendanceRecord]:
        row = self.db.execute_query(
            "SELECT * FROM attendance WHERE id = ?", (record_id,), fetch_all=False
        )
        return AttendanceRecord.from_row(row) if row else None

    def by_date(self, date: str) -> List[AttendanceRecord]:
        """All records for one civil date, newest first."""
        return self._select("date = ?", (date,))

    def by_student(self, identity: str) -> List[AttendanceRecord]:
        """All records for one student, newest date first."""
        return self._select("student_id = ?", (identity,), "ORDER BY date DESC, id DESC")

    def by_grade_and_date(self, grade: str, date: str) -> List[AttendanceRecord]:
        return self._select("grade = ? AND date = ?", (str(grade), date))

    def by_date_range(self, start: str, end: str) -> List[AttendanceRecord]:
        """Records with start <= date <= end, newest first."""
        return self._select(
            "date BETWEEN ? AND ?", (start, end), "ORDER BY date DESC, created_at DESC, id DESC"
        )

    def find_for_student_on(self, identity: str, date: str) -> Optional[AttendanceRecord]:
        """The first record for a student on a date, if any."""
        records = self._select("student_id = ? AND date = ?", (identity, date), "ORDER BY id ASC")
        return records[0] if records else None

    def _set_flag(self, record_id: int, column: str, flag: bool) -> bool:
        updated = self.db.execute_update(
            f"UPDATE attendance SET {column} = ? WHERE id = ?",
            (int(bool(flag)), record_id)
        )
        if not updated:
            self.logger.warning(f"No attendance record found with ID: {record_id}")
            return False
        return True

    def set_sms_notified(self, record_id: int, flag: bool = True) -> bool:
        return self._set_flag(record_id, 'sms_notified', flag)

    def set_email_notified(self, record_id: int, flag: bool = True) -> bool:
        return self._set_flag(record_id, 'email_notified', flag)

    def clear(self) -> int:
        """Delete every attendance record."""
        return self.db.clear_table('attendance')
