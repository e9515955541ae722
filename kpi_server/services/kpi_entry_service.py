# services/kpi_entry_service.py

import logging
from datetime import datetime, timezone

from .. import config
from ..constants import AuditAction, AuditType, EntryStatus
from ..db_manager import DBManager, from_json, paginate, safe_float, to_json
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..periods import is_current_period

logger = logging.getLogger(__name__)


def row_to_entry(row):
    """Store row -> API-shaped entry dict."""
    return {
        'id': row['id'],
        'kpiTemplateId': row['kpi_template_id'],
        'createdFor': row['created_for'],
        'kpirefs': row.get('kpirefs') or None,
        'jurisdiction': from_json(row.get('jurisdiction'), []),
        'month': int(row['month']),
        'year': int(row['year']),
        'values': from_json(row.get('entry_values'), []),
        'totalScore': safe_float(row.get('total_score')),
        'status': row['status'],
        'createdBy': row['created_by'],
        'version': int(row.get('version') or 1),
        'createdAt': row.get('created_at'),
        'updatedAt': row.get('updated_at'),
    }


class KpiEntryService:
    """
    Owns the state machine of a single KPI entry:

        created -> initiated -> generated

    Officers move an entry to ``initiated`` by submitting values during the
    entry's own reporting month; only the batch finalisation seals it.
    """

    def __init__(self, db_manager: DBManager, template_service, member_service,
                 scoring_service, audit_service, clock=None):
        self.db = db_manager
        self.templates = template_service
        self.members = member_service
        self.scoring = scoring_service
        self.audit = audit_service
        self.clock = clock or config.now

    # =========================================================================
    # READS
    # =========================================================================

    def get_entry(self, entry_id):
        data = self.db.get_data(f"SELECT * FROM {config.TABLE_KPI_ENTRIES} WHERE id = ?", (entry_id,))
        if not data:
            raise NotFound(f"KPI entry not found: {entry_id}", title='KPI Entry Not Found')
        return row_to_entry(data[0])

    def get_entries(self, created_for=None, month=None, year=None, template_id=None,
                    jurisdiction=None, status=None, page=1, limit=config.DEFAULT_PAGE_LIMIT):
        where, params = [], []
        if status:
            if status not in EntryStatus.ALL:
                raise ValidationError(f"status must be one of {', '.join(EntryStatus.ALL)}")
            where.append("status = ?")
            params.append(status)
        if created_for:
            where.append("created_for = ?")
            params.append(created_for)
        if month:
            where.append("month = ?")
            params.append(int(month))
        if year:
            where.append("year = ?")
            params.append(int(year))
        if template_id:
            where.append("kpi_template_id = ?")
            params.append(template_id)
        clause = f"WHERE {' AND '.join(where)}" if where else ''
        query = f"SELECT * FROM {config.TABLE_KPI_ENTRIES} {clause} ORDER BY created_at DESC, id"

        if jurisdiction:
            # jurisdiction is a JSON list column; match in Python
            entries = [e for e in map(row_to_entry, self.db.get_data(query, params))
                       if jurisdiction in e['jurisdiction'] or e['kpirefs'] == jurisdiction]
            start = (page - 1) * limit
            return paginate(entries[start:start + limit], len(entries), page, limit)

        total = int(self.db.get_scalar(
            f"SELECT COUNT(*) AS total FROM {config.TABLE_KPI_ENTRIES} {clause}", params) or 0)
        rows = self.db.get_data(f"{query} {self.db.page_clause(page, limit)}", params)
        return paginate([row_to_entry(r) for r in rows], total, page, limit)

    def get_entry_by_jurisdiction(self, user_id, jurisdiction, month=None, year=None, template_id=None):
        """
        The entry a member holds for one jurisdiction. An entry scoped to that
        exact reference wins over one that merely lists it.
        """
        where, params = ["created_for = ?"], [user_id]
        if month:
            where.append("month = ?")
            params.append(int(month))
        if year:
            where.append("year = ?")
            params.append(int(year))
        if template_id:
            where.append("kpi_template_id = ?")
            params.append(template_id)
        query = (
            f"SELECT * FROM {config.TABLE_KPI_ENTRIES} WHERE {' AND '.join(where)} "
            "ORDER BY created_at DESC, id"
        )
        entries = [row_to_entry(r) for r in self.db.get_data(query, params)]

        exact = [e for e in entries if e['kpirefs'] == jurisdiction]
        listed = [e for e in entries if jurisdiction in e['jurisdiction']]
        match = (exact or listed or [None])[0]
        if match is None:
            raise NotFound(f"No KPI entry for {user_id} in jurisdiction {jurisdiction}",
                           title='KPI Entry Not Found')
        return match

    # =========================================================================
    # PERMISSIONS
    # =========================================================================

    def check_permission(self, actor, entry):
        """
        Admin-department members may edit anything. Everyone else must hold a
        role that supervises the role of the entry's subject.
        """
        if actor is None:
            return False
        if self.members.is_admin(actor):
            return True

        subject = self.members.get_member(entry['createdFor'])
        if subject is None:
            logger.warning(f"Entry {entry['id']} belongs to unknown member {entry['createdFor']}")
            return False
        return self.members.supervises(actor.role, subject.role)

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit_values(self, entry_id, values, actor_id):
        entry = self.get_entry(entry_id)

        if entry['status'] == EntryStatus.GENERATED:
            raise Conflict(
                "Cannot update KPI entry that has already been generated. The entry has been finalized.",
                title='Entry Already Generated',
            )

        if not is_current_period(entry['month'], entry['year'], self.clock()):
            raise Conflict(
                "KPI entries can only be updated during their own reporting month",
                title='Update Period Expired',
            )

        actor = self.members.get_member(actor_id)
        if not self.check_permission(actor, entry):
            raise Forbidden("Only nodal officers can update KPI entries for their assigned roles")

        template = self.templates.require_template(entry['kpiTemplateId'])
        validated = self.scoring.validate_and_calculate_scores(values, template.items)
        total_score = self.scoring.calculate_total(validated)

        now = datetime.now(timezone.utc).isoformat()
        query = f"""
            UPDATE {config.TABLE_KPI_ENTRIES}
            SET entry_values = ?, total_score = ?, status = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND version = ? AND status <> ?
        """
        updated = self.db.execute_non_query(query, (
            to_json(validated), total_score, EntryStatus.INITIATED, now,
            entry_id, entry['version'], EntryStatus.GENERATED,
        ))
        if updated == 0:
            raise Conflict(
                "The entry changed while your values were being saved. Reload and try again.",
                title='Concurrent Update',
            )

        logger.info(f"Updated KPI entry {entry_id} with values by {actor_id} ({actor.role})")

        self.audit.record(AuditType.ENTRY, actor_id, AuditAction.UPDATE, [
            {'field': 'values', 'oldValue': entry['values'], 'newValue': validated},
            {'field': 'totalScore', 'oldValue': entry['totalScore'], 'newValue': total_score},
            {'field': 'status', 'oldValue': entry['status'], 'newValue': EntryStatus.INITIATED},
        ])

        return self.get_entry(entry_id)
