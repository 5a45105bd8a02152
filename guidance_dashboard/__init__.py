# Guidance Attendance Dashboard - Package
"""
Main package for the QR Guidance Attendance Dashboard.
Contains the attendance pipeline, student directory and reporting modules.
"""

__version__ = "1.0.0"
__description__ = "QR check-in attendance dashboard with parent notifications"

# Import core components for easy access
from .modules.clock import CivilClock
from .modules.database_manager import DatabaseManager
from .modules.student_manager import SeedRoster, DynamicStudentStore, StudentDirectory, student_identity
from .modules.attendance_ledger import AttendanceLedger, AttendanceRecord
from .modules.attendance_manager import AttendanceManager
from .modules.notification_system import NotificationSystem, SmsDispatcher, EmailDispatcher
from .modules.report_generator import ReportGenerator
from .modules.qr_generator import QRGenerator
from .modules.auth_manager import AuthManager
from .modules.maintenance import MaintenanceState

__all__ = [
    'CivilClock',
    'DatabaseManager',
    'SeedRoster',
    'DynamicStudentStore',
    'StudentDirectory',
    'student_identity',
    'AttendanceLedger',
    'AttendanceRecord',
    'AttendanceManager',
    'NotificationSystem',
    'SmsDispatcher',
    'EmailDispatcher',
    'ReportGenerator',
    'QRGenerator',
    'AuthManager',
    'MaintenanceState'
]
