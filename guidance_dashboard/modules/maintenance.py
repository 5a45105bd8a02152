"""
Maintenance mode for the dashboard API.

While maintenance is on, every /api request except the maintenance endpoints
themselves is answered with 503 and the maintenance message.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import threading

from flask import jsonify, request

DEFAULT_MESSAGE = "We are currently performing scheduled maintenance. Please check back soon."
EXEMPT_PREFIX = '/api/maintenance/'

logger = logging.getLogger(__name__)


class MaintenanceState:
    """Process-wide maintenance flag."""

    def __init__(self):
        self._lock = threading.Lock()
        self.enabled = False
        self.message = DEFAULT_MESSAGE
        self.enabled_at: Optional[datetime] = None
        self.enabled_by = 'admin'

    def enable(self, message: Optional[str] = None, enabled_by: str = 'admin') -> Dict[str, Any]:
        with self._lock:
            self.enabled = True
            self.enabled_at = datetime.now(timezone.utc)
            self.enabled_by = enabled_by
            if message:
                self.message = message
        logger.warning(f"Maintenance mode ENABLED at {self.enabled_at.isoformat()} by {enabled_by}")
        return self.status()

    def disable(self) -> Dict[str, Any]:
        with self._lock:
            was_enabled_at = self.enabled_at
            self.enabled = False
            self.enabled_at = None
            self.message = DEFAULT_MESSAGE
        since = was_enabled_at.isoformat() if was_enabled_at else 'unknown'
        logger.warning(f"Maintenance mode DISABLED. Was enabled since {since}")
        return self.status()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'enabled': self.enabled,
                'message': self.message,
                'enabled_at': self.enabled_at.isoformat() if self.enabled_at else None,
                'enabled_by': self.enabled_by
            }


def register_maintenance_gate(app, state: MaintenanceState) -> None:
    """Install a before_request hook that blocks the API while maintenance is on."""

    @app.before_request
    def maintenance_gate():
        if not state.enabled:
            return None
        if not request.path.startswith('/api/') or request.path.startswith(EXEMPT_PREFIX):
            return None

        return jsonify({
            'success': False,
            'error': 'maintenance',
            'message': state.message,
            'maintenance': True
        }), 503
