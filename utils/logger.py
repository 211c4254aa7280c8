"""
Logging setup for the reconciliation server and CLI (--log-level, --log-file)
"""
import json
import logging
import os
import sys
from datetime import datetime


class ReconciliationLogger:
    """Root logging setup shared by the API server and the CLI"""

    # Loggers that drown the reconciliation passes at INFO
    NOISY_LOGGERS = ('urllib3', 'googleapiclient', 'google.auth', 'sqlalchemy.engine', 'werkzeug')

    @staticmethod
    def setup_logging(log_level: str = "INFO", log_file: str = None):
        """Configure the root logger for the server and the CLI commands.

        Args:
            log_level: value of ``--log-level``; unknown names fall back to INFO
            log_file: value of ``--log-file``; its directory is created if needed,
                so a cron job can point at e.g. ``logs/conflict-check.log``
        """

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if log_file:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            # Reports carry emoji markers
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        for name in ReconciliationLogger.NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        return root_logger

    @staticmethod
    def log_api_call(endpoint: str, payload: dict, result: dict, processing_time: float):
        """Log one API call with a compact summary of what it did"""
        logger = logging.getLogger(__name__)

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "endpoint": endpoint,
            "processing_time_seconds": round(processing_time, 3),
            "request_summary": {key: payload.get(key) for key in sorted(payload or {})},
            "result_keys": sorted(result or {}),
        }

        logger.info(f"API call processed: {json.dumps(log_entry, default=str)}")
