# Guidance Attendance Dashboard - Modules Package
"""
Core business logic modules for the guidance attendance dashboard.
"""

# Module descriptions
MODULES = {
    'clock': 'School-timezone civil dates and times',
    'errors': 'Error types shared by the attendance modules',
    'database_manager': 'SQLite connections and schema',
    'student_manager': 'Seed roster, dynamic students and the merged directory',
    'attendance_ledger': 'Attendance record storage and queries',
    'attendance_manager': 'QR scan intake, classification and dedupe',
    'notification_system': 'Parent SMS and email notifications',
    'report_generator': 'Statistics, class lists and exports',
    'qr_generator': 'QR payload codec and image generation',
    'auth_manager': 'Shared admin password checks',
    'maintenance': 'Maintenance mode gate'
}


def get_module_info():
    """Get information about available modules"""
    return MODULES
