# services/audit_service.py

import logging
import uuid
from datetime import datetime, timezone

from .. import config
from ..db_manager import DBManager, from_json, paginate, to_json

logger = logging.getLogger(__name__)


class AuditService:
    """Write-only audit sink. Recording never fails the caller."""

    def __init__(self, db_manager: DBManager):
        self.db = db_manager

    def record(self, type, actor, action, changes):
        """
        Persist one audit record. Errors are logged and swallowed so the
        primary operation is never affected by the sink.
        """
        try:
            query = f"""
                INSERT INTO {config.TABLE_AUDIT_LOGS} (id, type, user_id, action, changes, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """
            self.db.execute_non_query(query, (
                uuid.uuid4().hex, type, actor or 'system', action,
                to_json(changes), datetime.now(timezone.utc).isoformat(),
            ))
            return True
        except Exception as e:
            logger.error(f"Audit log write failed ({type}/{action} by {actor}): {e}")
            return False

    def find(self, type=None, user_id=None, action=None, page=1, limit=50):
        where, params = [], []
        if type:
            where.append("type = ?")
            params.append(type)
        if user_id:
            where.append("user_id = ?")
            params.append(user_id)
        if action:
            where.append("action = ?")
            params.append(action)
        clause = f"WHERE {' AND '.join(where)}" if where else ''

        total = int(self.db.get_scalar(
            f"SELECT COUNT(*) AS total FROM {config.TABLE_AUDIT_LOGS} {clause}", params) or 0)
        rows = self.db.get_data(
            f"SELECT * FROM {config.TABLE_AUDIT_LOGS} {clause} ORDER BY created_at DESC "
            f"{self.db.page_clause(page, limit)}",
            params,
        )
        logs = [
            {
                'id': r['id'],
                'type': r['type'],
                'userId': r['user_id'],
                'action': r['action'],
                'changes': from_json(r['changes'], []),
                'createdAt': r['created_at'],
            }
            for r in rows
        ]
        return paginate(logs, total, page, limit)
