# services/kpi_template_service.py

import logging
import uuid
from datetime import datetime, timezone

from .. import config
from ..constants import FREQUENCIES, AuditAction, AuditType, KpiType
from ..db_manager import DBManager, from_json, paginate, to_json
from ..errors import NotFound, ValidationError
from ..models import KpiTemplate, TemplateItem
from .scoring_service import is_number

logger = logging.getLogger(__name__)


class KpiTemplateService:
    def __init__(self, db_manager: DBManager, audit_service=None):
        self.db = db_manager
        self.audit = audit_service

    @staticmethod
    def _row_to_template(row):
        return KpiTemplate(
            id=row['id'],
            name=row['name'],
            description=row.get('description') or None,
            department_slug=row['department_slug'],
            role=row['role'],
            frequency=row['frequency'],
            items=[TemplateItem.from_dict(i) for i in from_json(row['items'], [])],
            is_active=bool(row.get('is_active', True)),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    def get_template(self, template_id):
        """Template by id, or None."""
        query = f"SELECT * FROM {config.TABLE_KPI_TEMPLATES} WHERE id = ?"
        data = self.db.get_data(query, (template_id,))
        return self._row_to_template(data[0]) if data else None

    def require_template(self, template_id):
        template = self.get_template(template_id)
        if template is None:
            raise NotFound(f"KPI template not found: {template_id}", title='KPI Template Not Found')
        return template

    def list_templates(self, search=None, department_slug=None, role=None,
                       page=1, limit=config.DEFAULT_PAGE_LIMIT, active_only=False):
        where, params = [], []
        if search:
            where.append("LOWER(name) LIKE ?")
            params.append(f"%{search.lower()}%")
        if department_slug:
            where.append("department_slug = ?")
            params.append(department_slug)
        if role:
            where.append("role = ?")
            params.append(role)
        if active_only:
            where.append("is_active = 1")
        clause = f"WHERE {' AND '.join(where)}" if where else ''

        total = int(self.db.get_scalar(
            f"SELECT COUNT(*) AS total FROM {config.TABLE_KPI_TEMPLATES} {clause}", params) or 0)
        rows = self.db.get_data(
            f"SELECT * FROM {config.TABLE_KPI_TEMPLATES} {clause} ORDER BY name "
            f"{self.db.page_clause(page, limit)}",
            params,
        )
        return paginate([self._row_to_template(r) for r in rows], total, page, limit)

    def iter_templates(self, active_only=True):
        page = 1
        while True:
            result = self.list_templates(page=page, limit=config.TEMPLATE_PAGE_SIZE,
                                         active_only=active_only)
            yield from result['docs']
            if not result['hasNextPage']:
                break
            page += 1

    # =========================================================================
    # AUTHORING
    # =========================================================================

    def validate_items(self, items):
        """Reject templates whose rules cannot be evaluated consistently."""
        errors = []
        seen = set()
        for item in items:
            if not item.name:
                errors.append("every template item needs a name")
                continue
            if item.name in seen:
                errors.append(f"duplicate item name: {item.name}")
            seen.add(item.name)

            if item.kpi_type not in KpiType.ALL:
                errors.append(f"{item.name}: unknown kpiType {item.kpi_type}")
                continue

            if item.kpi_type == KpiType.PERCENTAGE:
                thresholds = []
                for rule in item.scoring_rules:
                    if not is_number(rule.value):
                        errors.append(f"{item.name}: percentage rules need a numeric value threshold")
                    elif rule.value in thresholds:
                        errors.append(f"{item.name}: duplicate percentage threshold {rule.value}")
                    else:
                        thresholds.append(rule.value)
                continue

            for rule in item.scoring_rules:
                if not is_number(rule.score):
                    errors.append(f"{item.name}: every rule needs a numeric score")
                if rule.is_range:
                    if not (is_number(rule.min) and is_number(rule.max)) or rule.min > rule.max:
                        errors.append(f"{item.name}: range rule needs numeric min <= max")
                elif not rule.is_exact:
                    errors.append(f"{item.name}: rule needs either min/max or value")

        if errors:
            raise ValidationError("; ".join(errors), title='Invalid KPI template')

    def _check_payload(self, payload, template_id=None):
        """Field, item and unique-name checks shared by create and update; returns the parsed items."""
        for key in ('name', 'departmentSlug', 'role', 'frequency'):
            if not payload.get(key):
                raise ValidationError(f"{key} is required")
        if payload['frequency'] not in FREQUENCIES:
            raise ValidationError(f"frequency must be one of {', '.join(FREQUENCIES)}")

        items = [TemplateItem.from_dict(i) for i in payload.get('template') or []]
        if not items:
            raise ValidationError("template must contain at least one item")
        self.validate_items(items)

        query = f"SELECT COUNT(*) AS total FROM {config.TABLE_KPI_TEMPLATES} WHERE name = ?"
        params = [payload['name']]
        if template_id:
            query += " AND id <> ?"
            params.append(template_id)
        if self.db.get_scalar(query, params):
            raise ValidationError(f"A KPI template named {payload['name']} already exists")
        return items

    def create_template(self, payload, actor='system'):
        items = self._check_payload(payload)

        now = datetime.now(timezone.utc).isoformat()
        template = KpiTemplate(
            id=uuid.uuid4().hex,
            name=payload['name'],
            description=payload.get('description'),
            department_slug=payload['departmentSlug'],
            role=payload['role'],
            frequency=payload['frequency'],
            items=items,
            is_active=bool(payload.get('isActive', True)),
            created_at=now,
            updated_at=now,
        )
        query = f"""
            INSERT INTO {config.TABLE_KPI_TEMPLATES}
            (id, name, description, department_slug, role, frequency, items, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        self.db.execute_non_query(query, (
            template.id, template.name, template.description, template.department_slug,
            template.role, template.frequency, to_json([i.to_dict() for i in items]),
            1 if template.is_active else 0, now, now,
        ))
        logger.info(f"Created KPI template {template.name} ({template.id}) by {actor}")

        if self.audit:
            self.audit.record(AuditType.TEMPLATE, actor, AuditAction.CREATE, [
                {'field': 'template', 'oldValue': None, 'newValue': template.to_dict()},
            ])
        return template

    def update_template(self, template_id, payload, actor='system'):
        """
        Partial update: keys missing from ``payload`` keep their stored value.
        The merged template goes through the same checks as creation.
        """
        existing = self.require_template(template_id)
        merged = existing.to_dict()
        merged.update({k: v for k, v in (payload or {}).items()
                       if k not in ('id', 'createdAt', 'updatedAt')})
        items = self._check_payload(merged, template_id=template_id)

        now = datetime.now(timezone.utc).isoformat()
        template = KpiTemplate(
            id=existing.id,
            name=merged['name'],
            description=merged.get('description'),
            department_slug=merged['departmentSlug'],
            role=merged['role'],
            frequency=merged['frequency'],
            items=items,
            is_active=bool(merged.get('isActive', True)),
            created_at=existing.created_at,
            updated_at=now,
        )
        query = f"""
            UPDATE {config.TABLE_KPI_TEMPLATES}
            SET name = ?, description = ?, department_slug = ?, role = ?, frequency = ?,
                items = ?, is_active = ?, updated_at = ?
            WHERE id = ?
        """
        self.db.execute_non_query(query, (
            template.name, template.description, template.department_slug, template.role,
            template.frequency, to_json([i.to_dict() for i in items]),
            1 if template.is_active else 0, now, template.id,
        ))
        logger.info(f"Updated KPI template {template.name} ({template.id}) by {actor}")

        if self.audit:
            self.audit.record(AuditType.TEMPLATE, actor, AuditAction.UPDATE, [
                {'field': 'template', 'oldValue': existing.to_dict(), 'newValue': template.to_dict()},
            ])
        return template
