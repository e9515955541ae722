# services/member_service.py

import logging
import uuid
from datetime import datetime, timezone

from .. import config
from ..db_manager import DBManager, from_json, paginate, to_json
from ..errors import ValidationError
from ..models import Member, parse_metadata

logger = logging.getLogger(__name__)


class MemberService:
    """Read side of the member directory plus the role supervision relation."""

    def __init__(self, db_manager: DBManager):
        self.db = db_manager

    # =========================================================================
    # MEMBERS
    # =========================================================================

    @staticmethod
    def _row_to_member(row):
        return Member(
            id=row['id'],
            user_id=row['user_id'],
            name=row.get('name') or None,
            email=row.get('email') or None,
            department_slug=row['department_slug'],
            role=row['role'],
            metadata=parse_metadata(row['role'], from_json(row['member_metadata'], {})),
        )

    def get_member(self, user_id):
        """Member for a user id, or None."""
        query = f"SELECT * FROM {config.TABLE_MEMBERS} WHERE user_id = ?"
        data = self.db.get_data(query, (user_id,))
        return self._row_to_member(data[0]) if data else None

    def list_members(self, department=None, role=None, page=1, limit=None):
        limit = limit or config.MEMBER_PAGE_SIZE
        where, params = [], []
        if department:
            where.append("department_slug = ?")
            params.append(department)
        if role:
            where.append("role = ?")
            params.append(role)
        clause = f"WHERE {' AND '.join(where)}" if where else ''

        total = int(self.db.get_scalar(
            f"SELECT COUNT(*) AS total FROM {config.TABLE_MEMBERS} {clause}", params) or 0)
        query = (
            f"SELECT * FROM {config.TABLE_MEMBERS} {clause} ORDER BY user_id "
            f"{self.db.page_clause(page, limit)}"
        )
        docs = [self._row_to_member(r) for r in self.db.get_data(query, params)]
        return paginate(docs, total, page, limit)

    def iter_members(self, department=None, role=None):
        """Walk every page of the directory for the given filter."""
        page = 1
        while True:
            result = self.list_members(department=department, role=role, page=page)
            yield from result['docs']
            if not result['hasNextPage']:
                break
            page += 1

    def create_member(self, user_id, department_slug, role, metadata=None, name=None, email=None):
        if not user_id or not department_slug or not role:
            raise ValidationError("userId, departmentSlug and role are required")
        if self.get_member(user_id) is not None:
            raise ValidationError(f"Member already exists: {user_id}")

        member = Member(
            id=uuid.uuid4().hex,
            user_id=user_id,
            department_slug=department_slug,
            role=role,
            metadata=parse_metadata(role, metadata),
            name=name,
            email=email,
        )
        now = datetime.now(timezone.utc).isoformat()
        query = f"""
            INSERT INTO {config.TABLE_MEMBERS}
            (id, user_id, name, email, department_slug, role, member_metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        self.db.execute_non_query(query, (
            member.id, member.user_id, member.name, member.email, member.department_slug,
            member.role, to_json(member.metadata.to_dict()), now, now,
        ))
        logger.info(f"Created member {user_id} ({department_slug}/{role})")
        return member

    # =========================================================================
    # ROLE SUPERVISION
    # =========================================================================

    def supervises(self, supervisor_role, target_role):
        if not supervisor_role or not target_role:
            return False
        query = f"""
            SELECT COUNT(*) AS total FROM {config.TABLE_ROLE_SUPERVISION}
            WHERE supervisor_role = ? AND target_role = ?
        """
        return int(self.db.get_scalar(query, (supervisor_role, target_role)) or 0) > 0

    def supervising_roles(self):
        rows = self.db.get_data(f"SELECT DISTINCT supervisor_role FROM {config.TABLE_ROLE_SUPERVISION}")
        return {r['supervisor_role'] for r in rows}

    def add_supervision(self, supervisor_role, target_role):
        if self.supervises(supervisor_role, target_role):
            return False
        query = f"INSERT INTO {config.TABLE_ROLE_SUPERVISION} (supervisor_role, target_role) VALUES (?, ?)"
        self.db.execute_non_query(query, (supervisor_role, target_role))
        return True

    def seed_supervision(self, mapping=None):
        mapping = config.DEFAULT_ROLE_SUPERVISION if mapping is None else mapping
        added = sum(1 for sup, target in mapping.items() if self.add_supervision(sup, target))
        if added:
            logger.info(f"Seeded {added} role supervision rules")
        return added

    # =========================================================================
    # ELIGIBILITY
    # =========================================================================

    def filter_excluded(self, members):
        """Drop the admin department and every supervising officer; they are never scored."""
        supervisors = self.supervising_roles()
        return [
            m for m in members
            if m.department_slug != config.ADMIN_DEPARTMENT and m.role not in supervisors
        ]

    def is_admin(self, member):
        return member is not None and member.department_slug == config.ADMIN_DEPARTMENT
