# schema.py
"""
Table definitions for the KPI store.

Services talk to these tables through raw SQL in DBManager; the Core metadata
here only exists so a fresh database (SQL Server or SQLite) can be created with
``init_schema``. JSON-shaped fields (template items, entry values, member
metadata, audit changes) are stored as text.
"""

import logging

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Table

from . import config

logger = logging.getLogger(__name__)

metadata = MetaData()

kpi_templates = Table(
    config.TABLE_KPI_TEMPLATES,
    metadata,
    Column('id', String(64), primary_key=True),
    Column('name', String(255), nullable=False, unique=True),
    Column('description', Text),
    Column('department_slug', String(128), nullable=False),
    Column('role', String(128), nullable=False),
    Column('frequency', String(16), nullable=False),
    Column('items', Text, nullable=False),
    Column('is_active', Boolean, nullable=False, default=True),
    Column('created_at', String(40), nullable=False),
    Column('updated_at', String(40), nullable=False),
)

kpi_entries = Table(
    config.TABLE_KPI_ENTRIES,
    metadata,
    Column('id', String(64), primary_key=True),
    Column('kpi_template_id', String(64), nullable=False),
    Column('created_for', String(64), nullable=False),
    Column('kpirefs', String(128)),
    Column('jurisdiction', Text, nullable=False),
    Column('month', Integer, nullable=False),
    Column('year', Integer, nullable=False),
    Column('entry_values', Text, nullable=False),
    Column('total_score', Float, nullable=False, default=0),
    Column('status', String(16), nullable=False),
    Column('created_by', String(64), nullable=False),
    Column('version', Integer, nullable=False, default=1),
    Column('created_at', String(40), nullable=False),
    Column('updated_at', String(40), nullable=False),
    Index('ix_kpi_entries_period', 'kpi_template_id', 'year', 'month'),
    Index('ix_kpi_entries_member', 'created_for', 'year', 'month'),
)

kpi_members = Table(
    config.TABLE_MEMBERS,
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, unique=True),
    Column('name', String(255)),
    Column('email', String(255)),
    Column('department_slug', String(128), nullable=False),
    Column('role', String(128), nullable=False),
    Column('member_metadata', Text, nullable=False),
    Column('created_at', String(40), nullable=False),
    Column('updated_at', String(40), nullable=False),
    Index('ix_kpi_members_dept_role', 'department_slug', 'role'),
)

kpi_role_supervision = Table(
    config.TABLE_ROLE_SUPERVISION,
    metadata,
    Column('supervisor_role', String(128), nullable=False),
    Column('target_role', String(128), nullable=False),
    UniqueConstraint('supervisor_role', 'target_role', name='uq_role_supervision'),
)

kpi_audit_logs = Table(
    config.TABLE_AUDIT_LOGS,
    metadata,
    Column('id', String(64), primary_key=True),
    Column('type', String(16), nullable=False),
    Column('user_id', String(64), nullable=False),
    Column('action', String(32), nullable=False),
    Column('changes', Text, nullable=False),
    Column('created_at', String(40), nullable=False),
)


def init_schema(engine):
    """Create any missing table. Existing tables are left untouched."""
    metadata.create_all(engine)
    logger.info("KPI schema ready on %s", engine.url.get_backend_name())
