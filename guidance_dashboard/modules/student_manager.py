"""
Student Manager Module - QR Guidance Attendance Dashboard

This module builds the single student directory the dashboard works with out of
two sources:

- the seed roster: administrator-curated JSON files, one per grade, read-only
  at runtime
- the dynamic collection: students enrolled through the QR generator or
  created on their first scan, kept in the database

Lookups walk an ordered list of resolvers and the first match wins, so a seed
student can never be shadowed by a dynamic record with the same identity.

Features:
- Deterministic student identity derivation
- Partial-failure tolerant roster loading
- Seed-first resolution and listing
- Enrollment validation and upsert of dynamic students
"""

from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from pathlib import Path
import json
import logging
import re

from guidance_dashboard.modules.errors import InvalidStudentData
from guidance_dashboard.modules.qr_generator import build_payload

GRADE_LEVELS = ('7', '8', '9', '10')
GENDERS = ('male', 'female', 'rather_not_say')
DEFAULT_GENDER = 'rather_not_say'
ROSTER_FILES = ('g7.json', 'g8.json', 'g9.json', 'g10.json')

SOURCE_SEED = 'seed'
SOURCE_DYNAMIC = 'dynamic'

_WHITESPACE = re.compile(r'\s+')
_EMAIL = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def student_identity(grade: Any, section: str, name: str) -> str:
    """
    Build the durable student key from grade, section and name.

    All whitespace is removed from the name, so "  Juan  Dela Cruz " and
    "Juan Dela Cruz" map to the same identity.
    """
    return f"{str(grade).strip()}-{section.strip()}-{_WHITESPACE.sub('', name)}"


@dataclass
class Student:
    """Data structure for a student from either directory source."""
    student_id: str
    name: str
    grade: str
    section: str
    parent_contact: str
    qr_data: str
    gender: str = DEFAULT_GENDER
    lrn: str = ''
    parent_email: str = ''
    source: str = SOURCE_DYNAMIC
    id: Optional[int] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Student':
        return cls(
            id=row['id'],
            student_id=row['student_id'],
            name=row['name'],
            gender=row.get('gender') or DEFAULT_GENDER,
            grade=row['grade'],
            section=row['section'],
            lrn=row.get('lrn') or '',
            parent_contact=row['parent_contact'],
            parent_email=row.get('parent_email') or '',
            qr_data=row['qr_data'],
            source=SOURCE_DYNAMIC,
            created_at=row.get('created_at')
        )


class SeedRoster:
    """
    Read-only roster of students loaded from per-grade JSON files.

    Each file declares its grade and section once; every entry in its
    "students" list inherits them:

        {"grade": "7", "section": "Love",
         "students": [{"name": ..., "gender": ..., "lrn": ..., "contact": ..., "email": ...}]}
    """

    def __init__(self, roster_dir, files: Tuple[str, ...] = ROSTER_FILES):
        self.roster_dir = Path(roster_dir)
        self.files = tuple(files)
        self.logger = logging.getLogger(__name__)

    def _iter_sources(self) -> Iterator[Tuple[str, str, List[Dict[str, Any]]]]:
        for filename in self.files:
            path = self.roster_dir / filename
            if not path.exists():
                self.logger.warning(f"Roster file not found, skipping: {path}")
                continue

            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                grade = str(data['grade']).strip()
                section = str(data['section']).strip()
                entries = data['students']
                if not isinstance(entries, list):
                    raise TypeError("'students' must be a list")
            except (OSError, ValueError, KeyError, TypeError) as e:
                self.logger.error(f"Error loading roster {filename}: {str(e)}")
                continue

            yield grade, section, entries

    def load_seed_entries(self) -> Iterator[Dict[str, Any]]:
        """Yield raw roster entries with their source's grade and section attached."""
        for grade, section, entries in self._iter_sources():
            for entry in entries:
                if isinstance(entry, dict):
                    yield {**entry, 'grade': grade, 'section': section}

    def load_seed_roster(self) -> Iterator[Student]:
        """
        Yield every seed student. Each call starts a fresh pass over the files.

        Returns:
            Iterator[Student]: Seed students, grade by grade
        """
        for grade, section, entries in self._iter_sources():
            for entry in entries:
                if not isinstance(entry, dict) or not str(entry.get('name') or '').strip():
                    self.logger.warning(f"Skipping roster entry without a name in grade {grade}")
                    continue

                name = str(entry['name'])
                student = {
                    'name': name,
                    'gender': entry.get('gender') or DEFAULT_GENDER,
                    'grade': grade,
                    'section': section,
                    'lrn': str(entry.get('lrn') or ''),
                    'parent_contact': str(entry.get('contact') or ''),
                    'parent_email': entry.get('email') or '',
                }
                yield Student(
                    student_id=student_identity(grade, section, name),
                    qr_data=build_payload(student),
                    source=SOURCE_SEED,
                    **student
                )

    def __iter__(self) -> Iterator[Student]:
        return self.load_seed_roster()

    def get(self, identity: str) -> Optional[Student]:
        for student in self.load_seed_roster():
            if student.student_id == identity:
                return student
        return None


class DynamicStudentStore:
    """
    Database-backed collection of students enrolled at runtime.
    """

    def __init__(self, database_manager):
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def get(self, identity: str) -> Optional[Student]:
        row = self.db.execute_query(
            "SELECT * FROM students WHERE student_id = ?",
            (identity,),
            fetch_all=False
        )
        return Student.from_row(row) if row else None

    def list(self, grade: Optional[str] = None) -> List[Student]:
        if grade is None:
            rows = self.db.execute_query("SELECT * FROM students ORDER BY id")
        else:
            rows = self.db.execute_query(
                "SELECT * FROM students WHERE grade = ? ORDER BY id",
                (str(grade),)
            )
        return [Student.from_row(row) for row in rows]

    def list_by_grade(self, grade: str) -> List[Student]:
        return self.list(grade)

    def count(self) -> int:
        row = self.db.execute_query("SELECT COUNT(*) AS total FROM students", fetch_all=False)
        return row['total'] if row else 0

    def upsert(self, student: Student) -> Student:
        """
        Insert a dynamic student, or overwrite the mutable fields of the one
        already stored under the same identity.
        """
        values = (
            student.name,
            student.gender or DEFAULT_GENDER,
            student.grade,
            student.section,
            student.lrn or '',
            student.parent_contact,
            student.parent_email or '',
            student.qr_data,
        )

        with self.db.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id FROM students WHERE student_id = ?", (student.student_id,))
            existing = cursor.fetchone()

            if existing:
                cursor.execute(
                    """UPDATE students
                       SET name = ?, gender = ?, grade = ?, section = ?, lrn = ?,
                           parent_contact = ?, parent_email = ?, qr_data = ?,
                           updated_at = CURRENT_TIMESTAMP
                       WHERE student_id = ?""",
                    values + (student.student_id,)
                )
                self.logger.info(f"Updated dynamic student {student.student_id}")
            else:
                cursor.execute(
                    """INSERT INTO students (name, gender, grade, section, lrn,
                                             parent_contact, parent_email, qr_data, student_id)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    values + (student.student_id,)
                )
                self.logger.info(f"Created dynamic student {student.student_id}")

            cursor.execute("SELECT * FROM students WHERE student_id = ?", (student.student_id,))
            return Student.from_row(dict(cursor.fetchone()))

    def delete(self, identity: str) -> bool:
        return self.db.execute_update(
            "DELETE FROM students WHERE student_id = ?", (identity,)
        ) > 0

    def clear(self) -> int:
        return self.db.clear_table('students')


class StudentDirectory:
    """
    Merged view over the seed roster and the dynamic collection.
    Seed data always takes precedence over dynamic data with the same identity.
    """

    def __init__(self, seed_roster: SeedRoster, dynamic_store: DynamicStudentStore):
        self.seed = seed_roster
        self.dynamic = dynamic_store
        self.logger = logging.getLogger(__name__)

        # first match wins
        self.resolvers: List[Callable[[str], Optional[Student]]] = [
            self.seed.get,
            self.dynamic.get,
        ]

    def resolve(self, identity: str) -> Optional[Student]:
        """
        Find a student by identity, checking the seed roster before the dynamic collection.

        Returns:
            Student or None when neither source has it
        """
        for resolver in self.resolvers:
            student = resolver(identity)
            if student is not None:
                return student
        return None

    def upsert(self, student: Student) -> Student:
        """Write a student to the dynamic collection. The seed roster is never written."""
        student.source = SOURCE_DYNAMIC
        return self.dynamic.upsert(student)

    def _merge(self, seed_students: List[Student], dynamic_students: List[Student]) -> List[Student]:
        seed_ids = {s.student_id for s in seed_students}
        return seed_students + [s for s in dynamic_students if s.student_id not in seed_ids]

    def list_by_grade(self, grade: str) -> List[Student]:
        grade = str(grade).strip()
        seed_students = [s for s in self.seed if s.grade == grade]
        return self._merge(seed_students, self.dynamic.list(grade))

    def list_all(self) -> List[Student]:
        return self._merge(list(self.seed), self.dynamic.list())

    def list_seed(self, grade: Optional[str] = None) -> List[Dict[str, Any]]:
        """Raw roster entries, optionally filtered by grade."""
        entries = list(self.seed.load_seed_entries())
        if grade is not None:
            entries = [e for e in entries if e['grade'] == str(grade).strip()]
        return entries

    def count(self) -> int:
        return len(self.list_all())

    def enroll(self, form: Dict[str, Any]) -> Student:
        """
        Enroll (or re-enroll) a student from the QR generator form.

        Args:
            form (Dict[str, Any]): name, grade, section, parent_contact and optional
                gender, lrn, parent_email, student_id, qr_data

        Returns:
            Student: The stored dynamic student

        Raises:
            InvalidStudentData: If required fields are missing or malformed
        """
        data = {key: (str(value).strip() if value is not None else '') for key, value in form.items()}

        for required in ('name', 'grade', 'section', 'parent_contact'):
            if not data.get(required):
                raise InvalidStudentData(f"Missing required field: {required}")

        if data['grade'] not in GRADE_LEVELS:
            raise InvalidStudentData(f"Grade must be one of {', '.join(GRADE_LEVELS)}")

        if data.get('parent_email') and not _EMAIL.match(data['parent_email']):
            raise InvalidStudentData('Invalid email address format')

        fields = {
            'name': data['name'],
            'gender': data.get('gender') or DEFAULT_GENDER,
            'grade': data['grade'],
            'section': data['section'],
            'lrn': data.get('lrn', ''),
            'parent_contact': data['parent_contact'],
            'parent_email': data.get('parent_email', ''),
        }
        student = Student(
            student_id=data.get('student_id') or student_identity(fields['grade'], fields['section'], fields['name']),
            qr_data=data.get('qr_data') or build_payload(fields),
            **fields
        )
        return self.upsert(student)

    def discard(self, identity: str) -> bool:
        """Remove one dynamic student, used to undo an enrollment whose scan failed."""
        return self.dynamic.delete(identity)

    def reset(self) -> int:
        """Remove every dynamic student. Seed files are untouched."""
        return self.dynamic.clear()
