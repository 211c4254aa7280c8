"""
Flask API server for the Calendar Reconciliation Engine

A thin HTTP surface: every route validates its input, calls one engine
operation and serialises the result.
"""
import hmac
import logging
import signal
import sys
import time
from datetime import datetime
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from config.settings import Config
from src.bookings.reservation_repository import InMemoryReservationRepository
from src.notifications.email_sender import LogEmailSender, SmtpEmailSender
from src.reconciliation.engine import ReconciliationEngine
from src.reconciliation.errors import (
    ConnectivityError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from src.storage import Database, LeaseLock, SqlLinkStore, SqlNotificationLedgerStore
from utils.logger import ReconciliationLogger
from utils.validators import DataSanitizer, RequestValidator

logger = logging.getLogger(__name__)


def build_engine(database: Optional[Database] = None, provider=None,
                 reservations=None, email_sender=None) -> ReconciliationEngine:
    """Wire the engine to the configured collaborators, falling back to local ones"""
    config = Config()
    database = database or Database(config.DATABASE_URL)
    database.create_all()

    if provider is None:
        try:
            from src.calendar.calendar_manager import GoogleCalendarProvider
            provider = GoogleCalendarProvider()
            logger.info("✅ Using Google Calendar provider")
        except Exception as e:
            logger.warning(f"⚠️  Google Calendar provider not available: {e}")
            logger.info("🔄 Using in-memory calendar provider")
            from src.calendar.mock_calendar_manager import InMemoryCalendarProvider
            provider = InMemoryCalendarProvider()

    if reservations is None:
        if config.RESERVATIONS_FILE:
            reservations = InMemoryReservationRepository.from_json_file(config.RESERVATIONS_FILE)
        else:
            logger.warning("⚠️  RECON_RESERVATIONS_FILE not set, starting with no reservations")
            reservations = InMemoryReservationRepository()

    if email_sender is None:
        try:
            email_sender = SmtpEmailSender()
        except ValueError as e:
            logger.warning(f"⚠️  {e}, notifications will only be logged")
            email_sender = LogEmailSender()

    return ReconciliationEngine(
        reservations=reservations,
        provider=provider,
        link_store=SqlLinkStore(database),
        ledger_store=SqlNotificationLedgerStore(database),
        email_sender=email_sender,
        lease_lock=LeaseLock(database),
    )


class ReconciliationAPI:
    """
    Flask API server exposing availability, conflicts and calendar links
    """

    def __init__(self, engine: Optional[ReconciliationEngine] = None,
                 install_signal_handlers: bool = True):
        self.config = Config()
        self.app = Flask(__name__)
        CORS(self.app)  # Enable CORS for the admin frontend

        self.engine = engine or build_engine()
        self.start_time = time.time()

        self._setup_routes()
        self._setup_error_handlers()

        if install_signal_handlers:
            self._setup_signal_handlers()

    def _setup_routes(self):
        """Setup Flask routes"""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            return jsonify({
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "uptime": time.time() - self.start_time,
            })

        @self.app.route('/availability', methods=['GET'])
        def availability():
            """Blocked days for the public booking calendar"""
            window_from, window_to = RequestValidator.validate_window(
                request.args.get('from'), request.args.get('to')
            )
            include_pending = request.args.get('includePending', 'false').lower() == 'true'
            days = self.engine.compute_blocked_days(window_from, window_to, include_pending)
            return jsonify({
                "from": window_from.isoformat(),
                "to": window_to.isoformat(),
                "blockedDays": [day.isoformat() for day in days],
            })

        @self.app.route('/conflicts', methods=['GET'])
        def list_conflicts():
            conflicts = self.engine.detect_all_conflicts()
            if request.args.get('includeIgnored', 'true').lower() != 'true':
                conflicts = [c for c in conflicts if not c.ignored]
            return jsonify({
                "conflicts": [c.to_dict() for c in conflicts],
                "total": len(conflicts),
            })

        @self.app.route('/conflicts/ignore', methods=['POST', 'DELETE'])
        def ignore_conflict():
            data = self._json_body()
            conflict_key, conflict_type = RequestValidator.validate_ignore_request(data)

            if request.method == 'DELETE':
                removed = self.engine.unignore_conflict(conflict_key, conflict_type)
                if not removed:
                    return jsonify({"error": "Conflict is not ignored"}), 404
                return jsonify({"success": True, "conflictKey": conflict_key})

            self.engine.ignore_conflict(
                conflict_key,
                conflict_type,
                reason=DataSanitizer.sanitize_text(data.get('reason')),
                ignored_by=DataSanitizer.sanitize_email(data.get('ignoredBy')),
            )
            return jsonify({"success": True, "conflictKey": conflict_key})

        @self.app.route('/conflicts/check', methods=['POST'])
        def run_conflict_check():
            """Periodic maintenance pass, called by the scheduler"""
            if not self._authorized():
                return jsonify({"error": "Unauthorized"}), 401
            return jsonify(self.engine.run_conflict_check())

        @self.app.route('/calendar-links/group', methods=['POST'])
        def group_events():
            start_time = time.time()
            data = self._json_body()
            event_ids, color_id = RequestValidator.validate_group_request(data)
            created_by = DataSanitizer.sanitize_email(data.get('createdBy'))

            result = self.engine.group(event_ids, color_id, created_by)
            response = {"success": True}
            response.update(result.to_dict())
            ReconciliationLogger.log_api_call(
                'group', data, response, time.time() - start_time
            )
            return jsonify(response)

        @self.app.route('/calendar-links/ungroup', methods=['POST'])
        def ungroup_events():
            data = self._json_body()
            event_ids = RequestValidator.validate_event_ids(data)
            result = self.engine.ungroup(event_ids)
            response = {"success": True}
            response.update(result.to_dict())
            return jsonify(response)

        @self.app.route('/calendar-links/ungroup-single', methods=['POST'])
        def ungroup_single_event():
            data = self._json_body()
            event_id = RequestValidator.validate_single_event(data)
            result = self.engine.ungroup_single(event_id)
            response = {"success": True}
            response.update(result.to_dict())
            return jsonify(response)

        @self.app.route('/reservations/<reservation_id>/changed', methods=['POST'])
        def reservation_changed(reservation_id):
            report = self.engine.handle_reservation_change(reservation_id)
            response = {
                "reservationId": reservation_id,
                "inConflict": self.engine.is_reservation_in_conflict(reservation_id),
            }
            response.update(report.to_dict())
            return jsonify(response)

    def _setup_error_handlers(self):

        @self.app.errorhandler(ValidationError)
        def validation_error(error):
            logger.warning(f"Rejected request: {error}")
            body = {"error": str(error)}
            if error.subject_id:
                body["subjectId"] = error.subject_id
            return jsonify(body), 400

        @self.app.errorhandler(NotFoundError)
        def not_found_error(error):
            return jsonify({"error": str(error), "eventId": error.event_id}), 404

        @self.app.errorhandler(ConnectivityError)
        def connectivity_error(error):
            return jsonify({"error": str(error), "pair": list(error.pair)}), 409

        @self.app.errorhandler(ReconciliationError)
        def reconciliation_error(error):
            logger.error(f"Engine error: {error}")
            return jsonify({"error": str(error)}), 500

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({"error": "Endpoint not found"}), 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return jsonify({"error": "Method not allowed"}), 405

        @self.app.errorhandler(500)
        def internal_error(error):
            return jsonify({"error": "Internal server error"}), 500

    def _json_body(self) -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("No JSON data provided")
        return data

    def _authorized(self) -> bool:
        secret = self.config.CRON_SECRET
        if not secret:
            return True
        header = request.headers.get('Authorization', '')
        return hmac.compare_digest(header, f"Bearer {secret}")

    def _setup_signal_handlers(self):
        """Setup graceful shutdown handlers"""
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down gracefully...")
            self.shutdown()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def run(self, host=None, port=None, debug=False):
        """Run the Flask server"""
        host = host or self.config.API_HOST
        port = port or self.config.API_PORT

        logger.info(f"Starting Calendar Reconciliation API server on {host}:{port}")

        try:
            self.app.run(
                host=host,
                port=port,
                debug=debug,
                threaded=True,
                use_reloader=False
            )
        except Exception as e:
            logger.error(f"Failed to start server: {e}")
            raise

    def shutdown(self):
        logger.info("Shutting down Calendar Reconciliation API server...")


def create_app(engine: Optional[ReconciliationEngine] = None) -> Flask:
    """Factory function to create Flask app"""
    api = ReconciliationAPI(engine, install_signal_handlers=False)
    return api.app
