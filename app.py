"""
QR Guidance Attendance Dashboard - Main Application

This module serves as the main entry point for the guidance attendance dashboard.
It builds the Flask application, wires the attendance components together and
exposes them as a JSON API.

Features:
- QR code scanning for morning check-in
- Live attendance feed, daily and weekly statistics
- Merged seed/dynamic student directory and enrollment
- Class lists and CSV/PDF exports
- Shared-password protection of admin endpoints
- Maintenance mode
"""

from flask import Flask, request, jsonify, send_file
import logging
import os

from config import get_config, validate_config
from guidance_dashboard.modules.errors import AttendanceError, StudentNotFound
from guidance_dashboard.modules.clock import CivilClock, parse_civil_date
from guidance_dashboard.modules.database_manager import DatabaseManager
from guidance_dashboard.modules.student_manager import (
    SeedRoster, DynamicStudentStore, StudentDirectory, GRADE_LEVELS
)
from guidance_dashboard.modules.attendance_ledger import AttendanceLedger
from guidance_dashboard.modules.attendance_manager import AttendanceManager
from guidance_dashboard.modules.notification_system import (
    NotificationSystem, SmsDispatcher, EmailDispatcher
)
from guidance_dashboard.modules.report_generator import ReportGenerator
from guidance_dashboard.modules.qr_generator import QRGenerator
from guidance_dashboard.modules.auth_manager import AuthManager, require_api_password, EXTENSION_KEY
from guidance_dashboard.modules.maintenance import MaintenanceState, register_maintenance_gate

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    'malformed_payload': 400,
    'invalid_student': 400,
    'student_not_found': 404,
    'upstream_unavailable': 500,
    'system_error': 500,
}


def error_response(error_type, message):
    return jsonify({
        'success': False,
        'error_type': error_type,
        'message': message
    }), ERROR_STATUS.get(error_type, 500)


def json_object():
    """Request body as a dict, or None when it is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def build_services(settings, **overrides):
    """
    Create the attendance components from configuration.

    Any component can be supplied through overrides (tests pass a pinned
    clock, an inline task runner and fake dispatchers).
    """
    services = {}
    services['clock'] = overrides.get('clock') or CivilClock(settings['TIMEZONE'])
    services['db'] = overrides.get('db') or DatabaseManager(settings['DATABASE_PATH'])

    services['directory'] = overrides.get('directory') or StudentDirectory(
        SeedRoster(settings['ROSTER_DIR']),
        DynamicStudentStore(services['db'])
    )
    services['ledger'] = overrides.get('ledger') or AttendanceLedger(services['db'])

    services['notifier'] = overrides.get('notifier') or NotificationSystem(
        services['ledger'],
        overrides.get('sms_dispatcher') or SmsDispatcher(
            settings['TWILIO_ACCOUNT_SID'],
            settings['TWILIO_AUTH_TOKEN'],
            settings['TWILIO_PHONE_NUMBER']
        ),
        overrides.get('email_dispatcher') or EmailDispatcher(
            smtp_server=settings['MAIL_SERVER'],
            smtp_port=settings['MAIL_PORT'],
            username=settings['MAIL_USERNAME'],
            password=settings['MAIL_PASSWORD'],
            sender=settings['MAIL_DEFAULT_SENDER'],
            use_tls=settings['MAIL_USE_TLS']
        ),
        task_runner=overrides.get('task_runner'),
        school_name=settings['SCHOOL_NAME'],
        enabled=settings['NOTIFICATIONS_ENABLED']
    )

    services['attendance'] = overrides.get('attendance') or AttendanceManager(
        services['directory'],
        services['ledger'],
        services['clock'],
        services['notifier'],
        on_time_cutoff=settings['ON_TIME_CUTOFF_MINUTES']
    )
    services['reports'] = overrides.get('reports') or ReportGenerator(
        services['directory'],
        services['ledger'],
        services['clock'],
        output_dir=settings['EXPORTS_FOLDER'],
        school_name=settings['SCHOOL_NAME']
    )
    services['qr'] = overrides.get('qr') or QRGenerator(settings['QR_CODE_SIZE'], settings['QR_CODE_BORDER'])
    services['auth'] = overrides.get('auth') or AuthManager(settings['API_PASSWORD'])
    services['maintenance'] = overrides.get('maintenance') or MaintenanceState()
    return services


def create_app(config_object=None, config_overrides=None, **overrides):
    """
    Application factory.

    Args:
        config_object: Configuration class, defaults to the one selected by FLASK_ENV
        config_overrides (dict): Individual settings replacing the class values
        **overrides: Pre-built components (see build_services)

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    config_class = config_object or get_config()
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    logging.getLogger().setLevel(app.config['LOG_LEVEL'])
    config_class.init_app(app)

    errors = validate_config(app.config)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    if not os.path.isdir(app.config['ROSTER_DIR']):
        logger.warning(f"Roster directory not found: {app.config['ROSTER_DIR']}, seed roster is empty")

    services = build_services(app.config, **overrides)
    app.extensions[EXTENSION_KEY] = services
    register_maintenance_gate(app, services['maintenance'])
    register_routes(app, services)

    logger.info(f"Guidance dashboard ready (timezone {app.config['TIMEZONE']})")
    return app


def register_routes(app, services):
    attendance = services['attendance']
    directory = services['directory']
    ledger = services['ledger']
    reports = services['reports']
    qr_generator = services['qr']
    auth = services['auth']
    maintenance = services['maintenance']

    def records_json(records):
        return jsonify([record.to_dict() for record in records])

    def check_grade(grade):
        if grade not in GRADE_LEVELS:
            return error_response('invalid_student', f"Unknown grade: {grade}")
        return None

    @app.errorhandler(AttendanceError)
    def handle_attendance_error(error):
        logger.error(f"{request.method} {request.path} failed: {error.message}")
        return error_response(error.error_type, error.message)

    @app.errorhandler(ValueError)
    def handle_value_error(error):
        return jsonify({'success': False, 'error_type': 'invalid_request', 'message': str(error)}), 400

    @app.route('/health')
    def health():
        """Liveness check"""
        return jsonify({'status': 'ok', 'date': services['clock'].today()})

    # ==================== ATTENDANCE ====================

    @app.route('/api/attendance/scan', methods=['POST'])
    def process_scan():
        """Process QR code scan and record attendance"""
        data = json_object()
        if data is None:
            return error_response('malformed_payload', 'Request body must be a JSON object')
        result = attendance.process_attendance_scan(data.get('qr_data'))

        if not result['success']:
            return error_response(result['error_type'], result['message'])
        return jsonify(result)

    @app.route('/api/attendance/date/<date>')
    def attendance_by_date(date):
        return records_json(ledger.by_date(parse_civil_date(date)))

    @app.route('/api/attendance/student/<student_id>')
    @require_api_password
    def attendance_by_student(student_id):
        return records_json(ledger.by_student(student_id))

    @app.route('/api/attendance/grade/<grade>/date/<date>')
    @require_api_password
    def attendance_by_grade_and_date(grade, date):
        return records_json(ledger.by_grade_and_date(grade, parse_civil_date(date)))

    @app.route('/api/attendance/range/<start>/<end>')
    @require_api_password
    def attendance_by_range(start, end):
        start, end = parse_civil_date(start), parse_civil_date(end)
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")
        return records_json(ledger.by_date_range(start, end))

    @app.route('/api/attendance/range/<start>/<end>/summary')
    @require_api_password
    def attendance_range_summary(start, end):
        return jsonify(reports.date_range_summary(start, end, request.args.get('grade')))

    @app.route('/api/attendance/stats/today')
    def today_stats():
        return jsonify(reports.today_stats())

    @app.route('/api/attendance/recent')
    def recent_attendance():
        limit = request.args.get('limit', 20, type=int)
        return jsonify(reports.recent(limit=max(1, min(limit, 100))))

    @app.route('/api/attendance/weekly')
    def weekly_attendance():
        return jsonify(reports.weekly())

    @app.route('/api/attendance/absent', methods=['POST'])
    @require_api_password
    def mark_absent():
        data = json_object()
        if data is None:
            return error_response('malformed_payload', 'Request body must be a JSON object')
        student_id = data.get('student_id')
        if not student_id:
            return error_response('invalid_student', 'student_id is required')

        date = parse_civil_date(data['date']) if data.get('date') else None
        record = attendance.mark_absent(student_id, date)
        return jsonify({'success': True, 'attendance': record.to_dict()})

    # ==================== STUDENTS ====================

    @app.route('/api/students', methods=['GET'])
    def list_students():
        return jsonify([student.to_dict() for student in directory.list_all()])

    @app.route('/api/students', methods=['POST'])
    @require_api_password
    def enroll_student():
        data = json_object()
        if data is None:
            return error_response('invalid_student', 'Student data must be a JSON object')
        student = directory.enroll(data)
        return jsonify({'success': True, 'student': student.to_dict()}), 201

    @app.route('/api/students/grade/<grade>')
    def students_by_grade(grade):
        invalid = check_grade(grade)
        if invalid:
            return invalid
        return jsonify([student.to_dict() for student in directory.list_by_grade(grade)])

    @app.route('/api/students/json')
    @app.route('/api/students/json/<grade>')
    def seed_students(grade=None):
        return jsonify(directory.list_seed(grade))

    @app.route('/api/students/<student_id>/qr')
    @require_api_password
    def student_qr(student_id):
        student = directory.resolve(student_id)
        if student is None:
            raise StudentNotFound(f"Student not found: {student_id}")

        with_info = request.args.get('with_info', 'false').lower() in ['true', '1']
        result = qr_generator.generate_student_qr_code(student.to_dict(), with_info=with_info)
        if not result['success']:
            return jsonify(result), 500

        result['image_size'] = list(result['image_size'])
        return jsonify(result)

    @app.route('/api/list/student/<grade_section>')
    def class_list(grade_section):
        grade, _, section = grade_section.partition('-')
        return jsonify(reports.class_list(grade, section or None))

    # ==================== REPORTS ====================

    @app.route('/api/reports/grade/<grade>/roster')
    @require_api_password
    def grade_roster(grade):
        invalid = check_grade(grade)
        if invalid:
            return invalid
        rows = reports.grade_roster(grade, request.args.get('date'), request.args.get('search'))
        return jsonify({'students': rows, 'summary': reports.roster_summary(rows)})

    @app.route('/api/reports/grade/<grade>.csv')
    @require_api_password
    def export_grade_csv(grade):
        invalid = check_grade(grade)
        if invalid:
            return invalid
        result = reports.export_csv(grade, request.args.get('date'))
        return send_file(os.path.abspath(result['filepath']), mimetype='text/csv',
                         as_attachment=True, download_name=result['filename'])

    @app.route('/api/reports/grade/<grade>.pdf')
    @require_api_password
    def export_grade_pdf(grade):
        invalid = check_grade(grade)
        if invalid:
            return invalid
        result = reports.export_pdf(grade, request.args.get('date'))
        return send_file(os.path.abspath(result['filepath']), mimetype='application/pdf',
                         as_attachment=True, download_name=result['filename'])

    @app.route('/api/reports/grade/<grade>/range/<start>/<end>.pdf')
    @require_api_password
    def export_grade_range_pdf(grade, start, end):
        invalid = check_grade(grade)
        if invalid:
            return invalid
        result = reports.export_range_pdf(grade, start, end)
        return send_file(os.path.abspath(result['filepath']), mimetype='application/pdf',
                         as_attachment=True, download_name=result['filename'])

    # ==================== AUTH & MAINTENANCE ====================

    @app.route('/api/auth/verify-scanner', methods=['POST'])
    def verify_scanner():
        data = json_object() or {}
        if not auth.is_configured():
            return jsonify({'success': False, 'error': 'Password not configured'}), 500
        if auth.check_password(data.get('password')):
            return jsonify({'success': True})
        return jsonify({'success': False, 'error': 'Invalid password'}), 401

    def check_admin_body():
        data = json_object()
        if data is None:
            return data, error_response('malformed_payload', 'Request body must be a JSON object')
        if not auth.is_configured():
            return data, (jsonify({'success': False, 'error': 'Admin password not configured'}), 500)
        if not auth.check_password(data.get('password')):
            logger.warning(f"Rejected maintenance toggle from {request.remote_addr}")
            return data, (jsonify({'success': False, 'error': 'Invalid admin password'}), 401)
        return data, None

    @app.route('/api/maintenance/status')
    def maintenance_status():
        return jsonify(maintenance.status())

    @app.route('/api/maintenance/on', methods=['POST'])
    def maintenance_on():
        data, rejected = check_admin_body()
        if rejected:
            return rejected
        state = maintenance.enable(data.get('message'), enabled_by=data.get('enabled_by') or 'admin')
        return jsonify({'success': True, 'message': 'Maintenance mode enabled', 'maintenance': state})

    @app.route('/api/maintenance/off', methods=['POST'])
    def maintenance_off():
        _, rejected = check_admin_body()
        if rejected:
            return rejected
        state = maintenance.disable()
        return jsonify({
            'success': True,
            'message': 'Maintenance mode disabled. Website is now live.',
            'maintenance': state
        })

    @app.route('/api/reset', methods=['POST'])
    @require_api_password
    def reset_all():
        """Wipe attendance and dynamically enrolled students"""
        counts = attendance.reset_all()
        return jsonify({'success': True, 'message': 'All data has been reset', **counts})


if __name__ == '__main__':
    app = create_app()

    # Run the application
    app.run(
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000)),
        debug=app.config['DEBUG']
    )
