# server.py
# --- KPI TRACKER PRODUCTION SERVER ---

import logging

from waitress import serve

from . import config
from .factory import create_app
from .logger_setup import setup_server_logging


def main():
    setup_server_logging()

    app = create_app()

    # Monthly entry/report jobs run inside this process
    app.kpi_scheduler.start()
    for job in app.kpi_scheduler.status():
        logging.info(f"Scheduled {job['name']} ({job['expression']}), next run {job['nextRun']}")

    print("-------------------------------------------------------")
    print("KPI TRACKER - PRODUCTION SERVER (WAITRESS)")
    print(f"Server is running at: http://{config.SERVER_HOST}:{config.SERVER_PORT}")
    print("-------------------------------------------------------")

    try:
        serve(app, host=config.SERVER_HOST, port=config.SERVER_PORT, threads=config.SERVER_THREADS)
    finally:
        app.kpi_scheduler.stop()
        app.db_manager.dispose()


if __name__ == '__main__':
    main()
