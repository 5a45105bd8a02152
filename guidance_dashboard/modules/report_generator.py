"""
Report Generator Module - QR Guidance Attendance Dashboard

This module handles the read side of the dashboard: the numbers on the home
page, the live feed, class lists, and the files guidance staff download.
Everything here is a read/fold over the attendance ledger and the student
directory; nothing in this module writes attendance data.

Features:
- Today's totals (present, late, absent, scanned)
- Live feed of today's latest scans
- Rolling seven-day and arbitrary date-range rollups
- Class lists and grade rosters joined with today's attendance
- CSV export (pandas) and PDF exports (ReportLab), including a
  calendar-style multi-day sheet with one page per month
"""

import pandas as pd
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging
import os

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle

from guidance_dashboard.modules.clock import parse_civil_date
from guidance_dashboard.modules.attendance_ledger import (
    STATUS_PRESENT, STATUS_LATE, STATUS_ABSENT, STATUS_PENDING, STATUS_UNMARKED
)

HEADER_COLOR = colors.Color(26 / 255, 54 / 255, 93 / 255)
ROW_ALT_COLOR = colors.Color(245 / 255, 247 / 255, 250 / 255)
CALENDAR_COLORS = {
    STATUS_PRESENT: colors.Color(30 / 255, 58 / 255, 95 / 255),
    STATUS_LATE: colors.Color(184 / 255, 134 / 255, 11 / 255),
    STATUS_ABSENT: colors.Color(178 / 255, 34 / 255, 34 / 255),
}


def _date_span(start: str, end: str) -> List[str]:
    """Every civil date from start to end inclusive."""
    start = parse_civil_date(start)
    end = parse_civil_date(end)
    if start > end:
        raise ValueError(f"Start date {start} is after end date {end}")

    current = datetime.strptime(start, '%Y-%m-%d')
    last = datetime.strptime(end, '%Y-%m-%d')
    dates = []
    while current <= last:
        dates.append(current.strftime('%Y-%m-%d'))
        current += timedelta(days=1)
    return dates


def _count(records, status: str) -> int:
    return sum(1 for r in records if r.status == status)


class ReportGenerator:
    """
    Read-only aggregations and exports over attendance data.
    """

    def __init__(self, directory, ledger, clock, output_dir: str = 'exports',
                 school_name: str = 'KNHS'):
        """
        Args:
            directory (StudentDirectory): Merged student lookup
            ledger (AttendanceLedger): Attendance record store
            clock (CivilClock): School-timezone clock
            output_dir (str): Folder export files are written to
            school_name (str): Name printed on report headers
        """
        self.directory = directory
        self.ledger = ledger
        self.clock = clock
        self.output_dir = output_dir
        self.school_name = school_name
        self.logger = logging.getLogger(__name__)

        os.makedirs(self.output_dir, exist_ok=True)

    def today_stats(self) -> Dict[str, Any]:
        """
        Get today's attendance totals.

        Returns:
            Dict[str, Any]: total_present, total_late, total_absent, total_scanned,
            total_students, date, day, year
        """
        now = self.clock.now()
        records = self.ledger.by_date(now.date)
        total_students = self.directory.count()
        scanned = sum(1 for r in records if r.status != STATUS_ABSENT)

        return {
            'total_present': _count(records, STATUS_PRESENT),
            'total_late': _count(records, STATUS_LATE),
            'total_absent': total_students - scanned,
            'total_scanned': scanned,
            'total_students': total_students,
            'date': now.date,
            'day': now.day_name,
            'year': now.year
        }

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Today's newest records for the live feed."""
        records = self.ledger.by_date(self.clock.today())[:limit]
        return [
            {
                'id': r.id,
                'student_name': r.student_name,
                'grade': r.grade,
                'section': r.section,
                'time_in': r.time_in,
                'status': r.status
            }
            for r in records
        ]

    def weekly(self) -> List[Dict[str, Any]]:
        """Seven daily rollups, oldest first, ending today."""
        week = []
        for offset in range(6, -1, -1):
            day = self.clock.date_offset(-offset)
            records = self.ledger.by_date(day.date)
            week.append({
                'date': day.date,
                'day': day.day_short,
                'full_day': day.day_full,
                'year': day.year,
                'present': _count(records, STATUS_PRESENT),
                'late': _count(records, STATUS_LATE),
                'absent': _count(records, STATUS_ABSENT)
            })
        return week

    def date_range_summary(self, start: str, end: str, grade: Optional[str] = None) -> Dict[str, Any]:
        """
        Per-day rollup of every date from start to end inclusive.

        Args:
            start (str): First date, YYYY-MM-DD
            end (str): Last date, YYYY-MM-DD
            grade (str): Only count records for this grade

        Returns:
            Dict[str, Any]: start, end, days (oldest first) and totals

        Raises:
            ValueError: If a date is malformed or start is after end
        """
        dates = _date_span(start, end)
        records = self.ledger.by_date_range(dates[0], dates[-1])
        if grade is not None:
            records = [r for r in records if r.grade == str(grade)]

        by_day: Dict[str, list] = {date: [] for date in dates}
        for record in records:
            by_day.setdefault(record.date, []).append(record)

        days = []
        for date in dates:
            day_records = by_day[date]
            days.append({
                'date': date,
                'day': datetime.strptime(date, '%Y-%m-%d').strftime('%a'),
                'present': _count(day_records, STATUS_PRESENT),
                'late': _count(day_records, STATUS_LATE),
                'absent': _count(day_records, STATUS_ABSENT),
                'total': len(day_records)
            })

        return {
            'start': dates[0],
            'end': dates[-1],
            'grade': grade,
            'days': days,
            'totals': {
                'present': sum(d['present'] for d in days),
                'late': sum(d['late'] for d in days),
                'absent': sum(d['absent'] for d in days),
                'records': len(records)
            }
        }

    def _roster_with_status(self, students, date: str, default_status: str) -> List[Dict[str, Any]]:
        attendance = {}
        for record in self.ledger.by_date(date):
            # newest first, keep the earliest record for the day
            attendance[record.student_id] = record

        rows = []
        for student in students:
            record = attendance.get(student.student_id)
            rows.append({
                'student_id': student.student_id,
                'name': student.name,
                'lrn': student.lrn,
                'grade': student.grade,
                'section': student.section,
                'gender': student.gender,
                'parent_contact': student.parent_contact,
                'date': date,
                'time_in': record.time_in if record else None,
                'status': record.status if record else default_status
            })
        return rows

    def class_list(self, grade: str, section: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Today's attendance for one class. Unscanned students show as pending.
        Sections match case-insensitively.
        """
        now = self.clock.now()
        students = self.directory.list_by_grade(grade)
        if section:
            students = [s for s in students if s.section.lower() == section.lower()]

        rows = self._roster_with_status(students, now.date, STATUS_PENDING)
        for row in rows:
            row['day'] = now.day_name
            row['year'] = now.year
        return rows

    def grade_roster(self, grade: str, date: Optional[str] = None,
                     search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Whole-grade roster with the day's status, unmarked when unscanned.

        Args:
            grade (str): Grade level
            date (str): Civil date, defaults to today
            search (str): Keep only students whose name or section contains this text
        """
        date = parse_civil_date(date) if date else self.clock.today()
        rows = self._roster_with_status(self.directory.list_by_grade(grade), date, STATUS_UNMARKED)

        if search:
            needle = search.lower()
            rows = [r for r in rows if needle in r['name'].lower() or needle in r['section'].lower()]
        return rows

    @staticmethod
    def roster_summary(rows: List[Dict[str, Any]]) -> Dict[str, int]:
        return {
            'present': sum(1 for r in rows if r['status'] == STATUS_PRESENT),
            'late': sum(1 for r in rows if r['status'] == STATUS_LATE),
            'absent_unmarked': sum(1 for r in rows if r['status'] in (STATUS_ABSENT, STATUS_UNMARKED)),
            'total': len(rows)
        }

    def _export_result(self, filename: str, filepath: str, fmt: str, rows: int) -> Dict[str, Any]:
        self.logger.info(f"{fmt.upper()} report generated: {filepath}")
        return {
            'success': True,
            'filename': filename,
            'filepath': filepath,
            'format': fmt,
            'records': rows,
            'size': os.path.getsize(filepath)
        }

    def export_csv(self, grade: str, date: Optional[str] = None) -> Dict[str, Any]:
        """
        Export a grade's roster for one day as CSV.

        Returns:
            Dict[str, Any]: CSV generation result (filename, filepath, size)
        """
        date = parse_civil_date(date) if date else self.clock.today()
        rows = self.grade_roster(grade, date)

        filename = f"attendance_grade{grade}_{date}.csv"
        filepath = os.path.join(self.output_dir, filename)

        columns = ['name', 'lrn', 'section', 'gender', 'date', 'time_in', 'status']
        df = pd.DataFrame(rows, columns=columns)
        df.insert(0, 'no', range(1, len(df) + 1))
        df['time_in'] = df['time_in'].fillna('-')
        df.to_csv(filepath, index=False, encoding='utf-8')

        return self._export_result(filename, filepath, 'csv', len(rows))

    def export_pdf(self, grade: str, date: Optional[str] = None) -> Dict[str, Any]:
        """
        Export a grade's roster for one day as a PDF table with a status summary.
        """
        date = parse_civil_date(date) if date else self.clock.today()
        rows = self.grade_roster(grade, date)
        summary = self.roster_summary(rows)

        filename = f"attendance_grade{grade}_{date}.pdf"
        filepath = os.path.join(self.output_dir, filename)

        doc = SimpleDocTemplate(filepath, pagesize=A4)
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            'ReportTitle',
            parent=styles['Heading1'],
            fontSize=16,
            spaceAfter=6,
            alignment=1  # Center alignment
        )
        subtitle_style = ParagraphStyle('ReportSubtitle', parent=styles['Normal'], alignment=1)

        day_label = datetime.strptime(date, '%Y-%m-%d').strftime('%A, %B %d, %Y')
        elements = [
            Paragraph(self.school_name, title_style),
            Paragraph('Attendance Report', subtitle_style),
            Paragraph(f"Grade {grade}", subtitle_style),
            Paragraph(day_label, subtitle_style),
            Spacer(1, 16),
        ]

        table_data = [['#', 'Student Name', 'Section', 'Time In', 'Status']]
        for index, row in enumerate(rows, start=1):
            table_data.append([
                str(index), row['name'], row['section'], row['time_in'] or '-', row['status'].upper()
            ])

        data_table = Table(table_data, colWidths=[30, 200, 100, 80, 80], repeatRows=1)
        data_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_COLOR),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, ROW_ALT_COLOR]),
            ('ALIGN', (0, 0), (0, -1), 'CENTER'),
            ('ALIGN', (4, 0), (4, -1), 'CENTER'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
        ]))
        elements.append(data_table)
        elements.append(Spacer(1, 12))
        elements.append(Paragraph(
            f"Summary: Present: {summary['present']} | Late: {summary['late']} | "
            f"Absent/Unmarked: {summary['absent_unmarked']} | Total: {summary['total']}",
            styles['Normal']
        ))
        elements.append(Paragraph(f"Generated by {self.school_name} Guidance Dashboard", styles['Normal']))

        doc.build(elements)
        return self._export_result(filename, filepath, 'pdf', len(rows))

    def export_range_pdf(self, grade: str, start: str, end: str) -> Dict[str, Any]:
        """
        Export a calendar-style attendance sheet for a grade over a date range.

        One landscape page per calendar month; each student row carries one
        colored cell per day (present, late, or absent/unmarked).

        Raises:
            ValueError: If a date is malformed or start is after end
        """
        dates = _date_span(start, end)
        students = self.directory.list_by_grade(grade)

        statuses = {}
        for record in self.ledger.by_date_range(dates[0], dates[-1]):
            statuses[(record.student_id, record.date)] = record.status

        months: Dict[str, List[str]] = {}
        for date in dates:
            month = datetime.strptime(date, '%Y-%m-%d').strftime('%B %Y')
            months.setdefault(month, []).append(date)

        filename = f"attendance_calendar_grade{grade}_{dates[0]}_to_{dates[-1]}.pdf"
        filepath = os.path.join(self.output_dir, filename)

        doc = SimpleDocTemplate(filepath, pagesize=landscape(A4),
                                leftMargin=20, rightMargin=20, topMargin=20, bottomMargin=20)
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle('CalendarTitle', parent=styles['Heading2'], alignment=1)
        subtitle_style = ParagraphStyle('CalendarSubtitle', parent=styles['Normal'], alignment=1)

        elements = []
        for month_index, (month, month_dates) in enumerate(months.items()):
            if month_index > 0:
                elements.append(PageBreak())

            elements.append(Paragraph(self.school_name, title_style))
            elements.append(Paragraph(f"Attendance Tracking Sheet - Grade {grade}", subtitle_style))
            elements.append(Paragraph(f"Month: {month}", subtitle_style))
            elements.append(Spacer(1, 10))

            header = ['#', 'Student Name'] + [str(int(d[-2:])) for d in month_dates]
            table_data = [header]
            cell_styles = []
            for row_index, student in enumerate(students, start=1):
                row = [str(row_index), student.name]
                for col_index, date in enumerate(month_dates, start=2):
                    row.append(datetime.strptime(date, '%Y-%m-%d').strftime('%a')[0])
                    status = statuses.get((student.student_id, date), STATUS_ABSENT)
                    fill = CALENDAR_COLORS.get(status, CALENDAR_COLORS[STATUS_ABSENT])
                    cell_styles.append(('BACKGROUND', (col_index, row_index), (col_index, row_index), fill))
                table_data.append(row)

            calendar_table = Table(table_data, colWidths=[20, 130] + [20] * len(month_dates), repeatRows=1)
            calendar_table.setStyle(TableStyle([
                ('BACKGROUND', (0, 0), (-1, 0), HEADER_COLOR),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
                ('TEXTCOLOR', (2, 1), (-1, -1), colors.white),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 6),
                ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
                ('ALIGN', (1, 1), (1, -1), 'LEFT'),
                ('GRID', (0, 0), (-1, -1), 0.1, colors.lightgrey)
            ] + cell_styles))
            elements.append(calendar_table)
            elements.append(Spacer(1, 8))

            legend = Table(
                [['Legend:', '', 'Present', '', 'Late', '', 'Absent']],
                colWidths=[40, 12, 45, 12, 35, 12, 45]
            )
            legend.setStyle(TableStyle([
                ('BACKGROUND', (1, 0), (1, 0), CALENDAR_COLORS[STATUS_PRESENT]),
                ('BACKGROUND', (3, 0), (3, 0), CALENDAR_COLORS[STATUS_LATE]),
                ('BACKGROUND', (5, 0), (5, 0), CALENDAR_COLORS[STATUS_ABSENT]),
                ('FONTNAME', (0, 0), (0, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 8)
            ]))
            elements.append(legend)
            elements.append(Paragraph(f"Generated by {self.school_name} Guidance Dashboard", styles['Normal']))

        doc.build(elements)
        return self._export_result(filename, filepath, 'pdf', len(students))
