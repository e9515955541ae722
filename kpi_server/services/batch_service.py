# services/batch_service.py

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from .. import config
from ..constants import SYSTEM_ACTOR, AuditAction, AuditType, EntryStatus
from ..db_manager import DBManager, to_json
from ..errors import Conflict, NotFound
from ..periods import validate_period

logger = logging.getLogger(__name__)

INSERT_ENTRY_SQL = f"""
    INSERT INTO {config.TABLE_KPI_ENTRIES}
    (id, kpi_template_id, created_for, kpirefs, jurisdiction, month, year,
     entry_values, total_score, status, created_by, version, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _chunks(rows, size):
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


class BatchService:
    """
    Monthly provisioning and sealing of KPI entries.

    Duplicate protection is a read-then-insert check, not a transaction: two
    triggers racing for the same (template, month, year) can both pass it.
    Triggers are rare and the check blocks every later rerun, which is the
    accepted trade-off.
    """

    def __init__(self, db_manager: DBManager, template_service, member_service, audit_service,
                 chunk_size=None, max_workers=None):
        self.db = db_manager
        self.templates = template_service
        self.members = member_service
        self.audit = audit_service
        self.chunk_size = chunk_size or config.BATCH_CHUNK_SIZE
        self.max_workers = max_workers or config.BATCH_MAX_WORKERS

    def eligible_members(self, template):
        members = self.members.iter_members(department=template.department_slug, role=template.role)
        return self.members.filter_excluded(list(members))

    @staticmethod
    def build_default_rows(template_id, members, month, year, actor, now):
        """One row per (member, kpiref); a member without kpirefs gets a single untagged row."""
        rows = []
        for member in members:
            refs = member.kpirefs or [None]
            jurisdiction = to_json(member.jurisdiction)
            for ref in refs:
                rows.append((
                    uuid.uuid4().hex, template_id, member.user_id, ref, jurisdiction,
                    month, year, to_json([]), 0, EntryStatus.CREATED, actor, 1, now, now,
                ))
        return rows

    def _existing_members(self, template_id, month, year):
        query = f"""
            SELECT DISTINCT created_for FROM {config.TABLE_KPI_ENTRIES}
            WHERE kpi_template_id = ? AND month = ? AND year = ?
        """
        return {r['created_for'] for r in self.db.get_data(query, (template_id, month, year))}

    def _bulk_insert(self, rows):
        chunks = list(_chunks(rows, self.chunk_size))
        if len(chunks) <= 1:
            return self.db.execute_many(INSERT_ENTRY_SQL, rows)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self.db.execute_many, INSERT_ENTRY_SQL, chunk) for chunk in chunks]
            # result() re-raises the first failed chunk
            return sum(f.result() for f in futures)

    def generate_default_entries(self, template_id, month, year, actor=SYSTEM_ACTOR):
        """Provision ``created`` entries for every eligible member of the template."""
        validate_period(month, year)
        logger.info(f"Generating default KPI entries for template {template_id}, month {month}, year {year}")

        template = self.templates.require_template(template_id)
        members = self.eligible_members(template)

        existing = self._existing_members(template_id, month, year)
        if existing & {m.user_id for m in members}:
            raise Conflict(
                f"KPI entries for template {template_id} already exist for {month}/{year}",
                title='Entries Already Exist',
            )

        now = datetime.now(timezone.utc).isoformat()
        rows = self.build_default_rows(template_id, members, month, year, actor, now)
        try:
            created = self._bulk_insert(rows)
        except Exception:
            logger.error(f"Default entry generation failed for template {template_id} ({month}/{year})")
            raise

        logger.info(f"Generated {created} default KPI entries for template {template_id}")

        self.audit.record(AuditType.ENTRY, actor, AuditAction.CREATE, [{
            'field': 'default_entries_generated',
            'oldValue': None,
            'newValue': {
                'templateId': template_id,
                'month': month,
                'year': year,
                'entriesCount': created,
                'membersCount': len(members),
            },
        }])

        return {
            'message': f"Successfully generated {created} default KPI entries",
            'entriesCount': created,
            'membersCount': len(members),
            'templateId': template_id,
            'month': month,
            'year': year,
        }

    def generate_final_reports(self, template_id, month, year, actor=SYSTEM_ACTOR):
        """Seal every open entry of the period. The only path to ``generated``."""
        validate_period(month, year)
        logger.info(f"Generating final KPI reports for template {template_id}, month {month}, year {year}")

        query = f"""
            SELECT id FROM {config.TABLE_KPI_ENTRIES}
            WHERE kpi_template_id = ? AND month = ? AND year = ? AND status IN (?, ?)
        """
        ids = [r['id'] for r in self.db.get_data(
            query, (template_id, month, year, *EntryStatus.OPEN))]
        if not ids:
            raise NotFound(
                f"No KPI entries found for template {template_id} in {month}/{year}",
                title='No Entries Found',
            )

        now = datetime.now(timezone.utc).isoformat()
        update_sql = f"""
            UPDATE {config.TABLE_KPI_ENTRIES}
            SET status = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND status IN (?, ?)
        """
        self.db.execute_many(update_sql, [
            (EntryStatus.GENERATED, now, entry_id, *EntryStatus.OPEN)
            for entry_id in ids
        ])

        logger.info(f"Generated {len(ids)} final KPI reports for template {template_id}")

        self.audit.record(AuditType.ENTRY, actor, AuditAction.GENERATE_REPORT, [{
            'field': 'final_reports_generated',
            'oldValue': None,
            'newValue': {
                'templateId': template_id,
                'month': month,
                'year': year,
                'entriesCount': len(ids),
            },
        }])

        return {
            'message': f"Successfully generated {len(ids)} final KPI reports",
            'entriesCount': len(ids),
            'templateId': template_id,
            'month': month,
            'year': year,
        }
