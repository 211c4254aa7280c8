#!/usr/bin/env python3
"""
Main entry point for the Calendar Reconciliation Engine

Runs the API server, the periodic conflict check, or one-off queries
against the configured calendar and reservations.
"""

import json
import logging
import sys
from datetime import timedelta

from src.api.flask_server import ReconciliationAPI, build_engine
from utils.conflict_logger import ConflictLogger
from utils.logger import ReconciliationLogger
from utils.validators import RequestValidator

logger = logging.getLogger(__name__)


def run_server(host=None, port=None, debug=False):
    """Run the Flask API server"""
    logger.info("Starting Calendar Reconciliation Engine...")

    try:
        api = ReconciliationAPI()
        api.run(host=host, port=port, debug=debug)
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


def run_conflict_check():
    """One maintenance pass; exits non-zero when another instance holds the lease"""
    result = build_engine().run_conflict_check()
    print(json.dumps(result, indent=2))
    return 1 if result.get("skipped") else 0


def show_blocked_days(from_value=None, to_value=None, include_pending=False):
    engine = build_engine()
    if from_value and to_value:
        window_from, window_to = RequestValidator.validate_window(from_value, to_value)
    else:
        window_from = engine.today()
        window_to = window_from + timedelta(days=90)

    days = engine.compute_blocked_days(window_from, window_to, include_pending)
    ConflictLogger.log_blocked_days(window_from, window_to, days)
    print(json.dumps([day.isoformat() for day in days], indent=2))
    return 0


def show_conflicts(output_file=None):
    conflicts = build_engine().detect_all_conflicts()
    ConflictLogger.log_conflict_report(conflicts)

    payload = [c.to_dict() for c in conflicts]
    if output_file:
        with open(output_file, 'w') as f:
            json.dump(payload, f, indent=2)
    else:
        print(json.dumps(payload, indent=2))
    return 0


def run_smoke(api_url="http://localhost:5000"):
    """Run the smoke checks against a running server"""
    from tests.smoke_client import ReconciliationSmokeClient

    logger.info(f"Running smoke checks against {api_url}")

    client = ReconciliationSmokeClient(api_url)
    results = client.run_smoke_suite()

    summary = results["summary"]
    print(f"\nSmoke Results:")
    print(f"  Total: {summary['total']}")
    print(f"  Passed: {summary['passed']}")
    print(f"  Failed: {summary['failed']}")

    return 0 if summary['failed'] == 0 else 1


def main(argv=None):
    """Main CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Calendar Reconciliation Engine')
    parser.add_argument('--log-level', default='INFO', help='Logging level')
    parser.add_argument('--log-file', help='Also write logs to this file')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    server_parser = subparsers.add_parser('server', help='Run API server')
    server_parser.add_argument('--host', default=None, help='Host to bind to')
    server_parser.add_argument('--port', type=int, default=None, help='Port to bind to')
    server_parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    subparsers.add_parser('check-conflicts', help='Run one conflict detection and notification pass')

    days_parser = subparsers.add_parser('blocked-days', help='Print blocked days for a window')
    days_parser.add_argument('--from', dest='window_from', help='First day (YYYY-MM-DD)')
    days_parser.add_argument('--to', dest='window_to', help='Last day (YYYY-MM-DD)')
    days_parser.add_argument('--include-pending', action='store_true',
                             help='Also block days of PENDING requests')

    conflicts_parser = subparsers.add_parser('conflicts', help='Print current conflicts')
    conflicts_parser.add_argument('--output', help='Output JSON file')

    smoke_parser = subparsers.add_parser('smoke', help='Run smoke checks against a server')
    smoke_parser.add_argument('--url', default='http://localhost:5000', help='API URL to check')

    args = parser.parse_args(argv)
    ReconciliationLogger.setup_logging(log_level=args.log_level, log_file=args.log_file)

    if args.command == 'server':
        run_server(host=args.host, port=args.port, debug=args.debug)
        return 0

    elif args.command == 'check-conflicts':
        return run_conflict_check()

    elif args.command == 'blocked-days':
        return show_blocked_days(args.window_from, args.window_to, args.include_pending)

    elif args.command == 'conflicts':
        return show_conflicts(args.output)

    elif args.command == 'smoke':
        return run_smoke(api_url=args.url)

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
