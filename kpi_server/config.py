# config.py
# Environment-driven settings for the KPI tracker.

import os
import urllib.parse
from datetime import datetime
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables from a .env file when present
load_dotenv()

# =========================================================================
# 1. INFRASTRUCTURE
# =========================================================================
DB_SERVER = os.getenv('DB_SERVER')
DB_NAME = os.getenv('DB_NAME')
DB_UID = os.getenv('DB_UID')
DB_PWD = os.getenv('DB_PWD')

APP_SECRET_KEY = os.getenv('APP_SECRET_KEY')

# Redis (statistics cache)
REDIS_HOST = os.getenv('REDIS_HOST') or 'localhost'
REDIS_PORT = int(os.getenv('REDIS_PORT') or 6379)
CACHE_TYPE = os.getenv('CACHE_TYPE') or 'RedisCache'
STATS_CACHE_TIMEOUT = int(os.getenv('STATS_CACHE_TIMEOUT') or 60)

# --- DATABASE CONNECTION ---
DB_DRIVER = '{ODBC Driver 17 for SQL Server}'
CONNECTION_STRING = (
    f"DRIVER={DB_DRIVER};SERVER={DB_SERVER};DATABASE={DB_NAME};"
    f"UID={DB_UID};" f"PWD={DB_PWD};"
)

# DATABASE_URL wins; otherwise build the SQL Server URI from the parts above
params = urllib.parse.quote_plus(CONNECTION_STRING)
SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL') or f"mssql+pyodbc:///?odbc_connect={params}"

# Seconds before a directory/store call gives up (passed to the DBAPI driver)
DB_TIMEOUT_SECONDS = int(os.getenv('DB_TIMEOUT_SECONDS') or 30)

LOG_DIR = os.getenv('LOG_DIR') or 'logs'
LOG_FILE_NAME = 'kpi_server.log'

# =========================================================================
# 2. CLOCK
# =========================================================================
# Scheduled jobs and the "current reporting period" are evaluated in this zone
TIMEZONE = os.getenv('KPI_TIMEZONE') or 'Asia/Kolkata'


def now():
    """Wall-clock time in the configured reporting time zone."""
    return datetime.now(ZoneInfo(TIMEZONE))

# =========================================================================
# 3. ORGANISATION & ROLES
# =========================================================================
# Members of this department may edit any entry and never receive entries
ADMIN_DEPARTMENT = os.getenv('KPI_ADMIN_DEPARTMENT') or 'collector-office'

# supervising role -> role whose entries it may edit
DEFAULT_ROLE_SUPERVISION = {
    'nodalOfficer-sdm': 'sdm',
    'nodalOfficer-tehsildar': 'tehsildar',
    'nodalOfficer-patwari': 'patwari',
    'nodalOfficer-ri': 'ri',
}

# =========================================================================
# 4. KPI LIMITS & BATCH TUNING
# =========================================================================
KPI_MIN_YEAR = 2020
MEMBER_PAGE_SIZE = int(os.getenv('MEMBER_PAGE_SIZE') or 500)
TEMPLATE_PAGE_SIZE = 100
BATCH_CHUNK_SIZE = int(os.getenv('BATCH_CHUNK_SIZE') or 500)
BATCH_MAX_WORKERS = int(os.getenv('BATCH_MAX_WORKERS') or 4)
DEFAULT_PAGE_LIMIT = 10
STATS_PAGE_LIMIT = 100

# =========================================================================
# 5. SCHEDULE (cron expressions, evaluated in TIMEZONE)
# =========================================================================
CRON_MONTHLY_ENTRIES = '0 2 2 * *'   # 2nd of the month, 02:00
CRON_MONTHLY_REPORTS = '0 1 1 * *'   # 1st of the month, 01:00
CRON_HEALTH_CHECK = '0 6 * * *'      # every day, 06:00

# =========================================================================
# 6. DATABASE OBJECTS
# =========================================================================
TABLE_KPI_TEMPLATES = 'kpi_templates'
TABLE_KPI_ENTRIES = 'kpi_entries'
TABLE_MEMBERS = 'kpi_members'
TABLE_ROLE_SUPERVISION = 'kpi_role_supervision'
TABLE_AUDIT_LOGS = 'kpi_audit_logs'

# Server
SERVER_HOST = os.getenv('SERVER_HOST') or '0.0.0.0'
SERVER_PORT = int(os.getenv('SERVER_PORT') or 5000)
SERVER_THREADS = int(os.getenv('SERVER_THREADS') or 12)
