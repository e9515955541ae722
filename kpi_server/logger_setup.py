# logger_setup.py
import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler

from flask import has_request_context, session

from . import config


class UserFilter(logging.Filter):
    """Stamp the acting user_code on every record so failures can be traced to a person."""

    def filter(self, record):
        if has_request_context():
            record.user_code = session.get('user_code', 'System/Anon')
        else:
            record.user_code = 'System'
        return True


def setup_production_logging(app, log_dir=None):
    # 1. Log directory
    log_dir = log_dir or config.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    # 2. Format: [time] LEVEL in module:line [user]: message
    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s:%(lineno)d [%(user_code)s]: %(message)s'
    )

    # 3. Rotate at midnight, keep 30 days
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, config.LOG_FILE_NAME),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.INFO)
    file_handler.addFilter(UserFilter())

    # 4. The app is named after the package, so app.logger is the parent of
    # every service module logger. Replace a handler left by an earlier app.
    for handler in list(app.logger.handlers):
        if isinstance(handler, TimedRotatingFileHandler):
            app.logger.removeHandler(handler)
            handler.close()
    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)

    app.logger.info("KPI Tracker Startup: logging enabled.")
    return file_handler


def setup_server_logging(log_dir=None):
    """Process-wide logging for the waitress entry point and the scheduler threads."""
    log_dir = log_dir or config.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
        handlers=[
            logging.FileHandler(
                os.path.join(log_dir, f"kpi_server_{datetime.now().strftime('%Y%m%d')}.log"),
                encoding='utf-8'
            ),
            logging.StreamHandler()
        ]
    )
    logging.info("KPI Tracker Server Startup: logging enabled.")
