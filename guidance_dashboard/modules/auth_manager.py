"""
Authentication Manager Module - QR Guidance Attendance Dashboard

The dashboard has no user accounts. Admin endpoints are protected by one
shared password that clients send in the X-API-Password header (or, for the
scanner and maintenance toggles, in the request body). Only a hash of the
password is kept in memory.

When no password is configured the protected endpoints stay open.
"""

from functools import wraps
from typing import Optional
import logging

from flask import current_app, jsonify, request
from werkzeug.security import generate_password_hash, check_password_hash

PASSWORD_HEADER = 'X-API-Password'
EXTENSION_KEY = 'guidance_dashboard'


class AuthManager:
    """
    Checks the shared admin password.
    """

    def __init__(self, api_password: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._password_hash = generate_password_hash(api_password) if api_password else None

    def is_configured(self) -> bool:
        return self._password_hash is not None

    def check_password(self, password: Optional[str]) -> bool:
        """
        Args:
            password (str): Candidate password

        Returns:
            bool: True only when a password is configured and the candidate matches it
        """
        if not self.is_configured() or not password:
            return False
        return check_password_hash(self._password_hash, password)

    def authorize_request(self) -> bool:
        """Whether the current request may reach a protected endpoint."""
        if not self.is_configured():
            return True

        if self.check_password(request.headers.get(PASSWORD_HEADER)):
            return True

        self.logger.warning(f"Rejected {request.method} {request.path}: invalid or missing API password")
        return False


def require_api_password(f):
    """Decorator to require the shared API password for protected routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth = current_app.extensions[EXTENSION_KEY]['auth']
        if not auth.authorize_request():
            return jsonify({'success': False, 'error': 'Invalid or missing API password'}), 401
        return f(*args, **kwargs)
    return decorated_function
