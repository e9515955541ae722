# db_manager.py

import json
import logging
import math

import pandas as pd
from sqlalchemy import create_engine

from . import config

logger = logging.getLogger(__name__)

# =========================================================================
# DATA HELPERS
# =========================================================================

def safe_float(value):
    """Turn None, empty strings, 'None' or 'nan' into 0.0; everything else into float."""
    if value is None:
        return 0.0

    str_val = str(value).strip().lower()
    if str_val in ['', 'none', 'nan']:
        return 0.0

    try:
        f_val = float(value)
        if math.isnan(f_val) or math.isinf(f_val):
            return 0.0
        return f_val
    except (ValueError, TypeError):
        return 0.0


def to_json(value):
    return json.dumps(value, ensure_ascii=False)


def from_json(value, default=None):
    """Decode a JSON text column; blanks come back as ``default``."""
    if value is None or value == '':
        return default
    if isinstance(value, (list, dict)):
        return value
    return json.loads(value)


def paginate(docs, total, page, limit):
    """Build the paginated envelope shared by every list endpoint."""
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'docs': docs,
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': total_pages,
        'hasNextPage': page < total_pages,
        'hasPreviousPage': page > 1,
    }

# =========================================================================
# DATA ACCESS LAYER (DAL)
# =========================================================================

class DBManager:
    def __init__(self, database_uri=None):
        uri = database_uri or config.SQLALCHEMY_DATABASE_URI
        engine_kwargs = {
            'connect_args': {'timeout': config.DB_TIMEOUT_SECONDS},
        }
        # Pool tuning only applies to the SQL Server deployment
        if uri.startswith('mssql'):
            engine_kwargs.update(
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_recycle=1800,
                fast_executemany=True,
            )
        self.engine = create_engine(uri, **engine_kwargs)
        logger.info(f"--- Init DB Connection Pool ({self.engine.url.get_backend_name()}) ---")

    # 1. READS (pandas over the pooled SQLAlchemy connection)
    def get_data(self, query, params=None):
        """
        Run a SELECT and return a list of dict rows.
        Text cells are stripped; NULL text becomes ''.
        """
        try:
            with self.engine.connect() as conn:
                if params:
                    df = pd.read_sql(query, conn, params=tuple(params))
                else:
                    df = pd.read_sql(query, conn)

                for col in df.select_dtypes(include=['object', 'string']).columns:
                    def clean_cell(x):
                        # NULLs arrive as None, NaN or pd.NA depending on the column dtype
                        if x is None or x is pd.NA: return ''
                        if isinstance(x, float) and math.isnan(x): return ''
                        if isinstance(x, bytes):
                            return x.decode('utf-8', errors='ignore')
                        return str(x).strip()

                    df[col] = df[col].apply(clean_cell)

                return df.to_dict('records')

        except Exception as e:
            logger.error(f"get_data failed: {e}")
            raise

    # 2. WRITES (raw DBAPI connection, '?' placeholders)
    def execute_non_query(self, query, params=None):
        """Run one INSERT/UPDATE/DELETE in its own transaction; returns the affected row count."""
        conn = None
        try:
            conn = self.engine.raw_connection()
            cursor = conn.cursor()

            if params:
                cursor.execute(query, tuple(params))
            else:
                cursor.execute(query)

            rowcount = cursor.rowcount
            conn.commit()
            return rowcount
        except Exception as e:
            logger.error(f"execute_non_query failed: {e}")
            if conn: conn.rollback()
            raise
        finally:
            if conn: conn.close()

    def execute_many(self, query, rows):
        """Run the same statement for every parameter tuple, all in one transaction."""
        if not rows:
            return 0
        conn = None
        try:
            conn = self.engine.raw_connection()
            cursor = conn.cursor()
            cursor.executemany(query, [tuple(r) for r in rows])
            conn.commit()
            return len(rows)
        except Exception as e:
            logger.error(f"execute_many failed ({len(rows)} rows): {e}")
            if conn: conn.rollback()
            raise
        finally:
            if conn: conn.close()

    def page_clause(self, page, limit):
        """Dialect-specific tail for a paginated, ORDER BY'd SELECT."""
        offset = int((page - 1) * limit)
        if self.engine.dialect.name == 'mssql':
            return f"OFFSET {offset} ROWS FETCH NEXT {int(limit)} ROWS ONLY"
        return f"LIMIT {int(limit)} OFFSET {offset}"

    def get_scalar(self, query, params=None):
        rows = self.get_data(query, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def dispose(self):
        self.engine.dispose()
