# constants.py
# --- KPI TRACKER: SINGLE SOURCE OF TRUTH FOR STATUS AND KIND NAMES ---


class EntryStatus:
    """Lifecycle of a KPI entry. Transitions only move forward."""

    CREATED = 'created'
    INITIATED = 'initiated'
    GENERATED = 'generated'

    # Pseudo-status used by rankings for members without any stored entry
    NO_ENTRY = 'no-entry'

    ALL = (CREATED, INITIATED, GENERATED)
    OPEN = (CREATED, INITIATED)
    # Only these count as "has an entry" in statistics
    FILLED = (INITIATED, GENERATED)

    PRIORITY = {
        GENERATED: 4,
        INITIATED: 3,
        CREATED: 2,
        NO_ENTRY: 1,
    }


class KpiType:
    QUANTITATIVE = 'quantitative'
    PERCENTAGE = 'percentage'
    BINARY = 'binary'
    QUALITATIVE = 'qualitative'
    SCORE = 'score'

    ALL = (QUANTITATIVE, PERCENTAGE, BINARY, QUALITATIVE, SCORE)
    NUMERIC = (QUANTITATIVE, PERCENTAGE, SCORE)


FREQUENCIES = ('daily', 'weekly', 'monthly', 'quarterly', 'yearly')

# Ranking row marker for members scored as one undivided unit
NO_KPIREF = 'no-kpiref'

SYSTEM_ACTOR = 'system'


class AuditAction:
    CREATE = 'create'
    UPDATE = 'update'
    GENERATE_REPORT = 'generate_report'


class AuditType:
    TEMPLATE = 'template'
    ENTRY = 'entry'
