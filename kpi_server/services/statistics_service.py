# services/statistics_service.py

import logging

import pandas as pd

from .. import config
from ..constants import NO_KPIREF, EntryStatus
from ..db_manager import DBManager, paginate
from ..errors import NotFound, ValidationError
from ..periods import is_past_period, period_label, resolve_period
from .kpi_entry_service import row_to_entry

logger = logging.getLogger(__name__)


def _ranking_row(member, kpiref, entry):
    row = {
        'memberId': member.user_id,
        'memberName': member.name or 'Unknown',
        'memberEmail': member.email or 'Unknown',
        'memberDepartment': member.department_slug,
        'memberRole': member.role,
        'ranking': 0,
        'totalScore': 0,
        'hasEntry': False,
        'entryId': None,
        'status': EntryStatus.NO_ENTRY,
        'kpiref': kpiref,
        'jurisdiction': [],
    }
    if entry is not None:
        row['status'] = entry['status']
        row['entryId'] = entry['id']
        row['jurisdiction'] = entry['jurisdiction']
        # A bare 'created' placeholder does not count as an entry
        if entry['status'] in EntryStatus.FILLED:
            row['hasEntry'] = True
            row['totalScore'] = entry['totalScore']
    return row


def summarize(rankings):
    """Summary block over the ranking rows; scores only count rows that have an entry."""
    total = len(rankings)
    df = pd.DataFrame(rankings, columns=['hasEntry', 'totalScore'])
    filled = df[df['hasEntry'].astype(bool)]
    with_entries = len(filled)

    if with_entries:
        average = round(float(filled['totalScore'].mean()), 2)
        highest = float(filled['totalScore'].max())
        lowest = float(filled['totalScore'].min())
    else:
        average = highest = lowest = 0

    return {
        'totalRankings': total,
        'rankingsWithEntries': with_entries,
        'rankingsWithoutEntries': total - with_entries,
        'averageScore': average,
        'highestScore': highest,
        'lowestScore': lowest,
        'completionRate': round(with_entries / total * 100) if total else 0,
    }


def apply_current_ranking(rankings):
    """Everyone listed; status priority first, then score. Only sealed rows get a rank."""
    rankings.sort(key=lambda r: (-EntryStatus.PRIORITY.get(r['status'], 0), -r['totalScore']))
    counter = 1
    for row in rankings:
        if row['status'] == EntryStatus.GENERATED:
            row['ranking'] = counter
            counter += 1
        else:
            row['ranking'] = 0
    return rankings


def apply_past_ranking(rankings):
    """Only sealed rows are ranked, by score; the rest keep rank 0 after them."""
    generated = [r for r in rankings if r['status'] == EntryStatus.GENERATED]
    others = [r for r in rankings if r['status'] != EntryStatus.GENERATED]
    generated.sort(key=lambda r: -r['totalScore'])
    for index, row in enumerate(generated, start=1):
        row['ranking'] = index
    for row in others:
        row['ranking'] = 0
    return generated + others


class StatisticsService:
    def __init__(self, db_manager: DBManager, member_service, clock=None):
        self.db = db_manager
        self.members = member_service
        self.clock = clock or config.now

    def _load_entries(self, month, year, template_id=None):
        query = f"SELECT * FROM {config.TABLE_KPI_ENTRIES} WHERE month = ? AND year = ?"
        params = [month, year]
        if template_id:
            query += " AND kpi_template_id = ?"
            params.append(template_id)
        return [row_to_entry(r) for r in self.db.get_data(query + " ORDER BY created_at, id", params)]

    @staticmethod
    def build_rankings(members, entries):
        by_member = {}
        for entry in entries:
            by_member.setdefault(entry['createdFor'], []).append(entry)

        rankings = []
        for member in members:
            member_entries = by_member.get(member.user_id, [])
            if not member.kpirefs:
                untagged = [e for e in member_entries if not e['kpirefs']]
                entry = (untagged or member_entries or [None])[0]
                rankings.append(_ranking_row(member, NO_KPIREF, entry))
                continue

            by_ref = {}
            for e in member_entries:
                by_ref.setdefault(e['kpirefs'], e)
            for ref in member.kpirefs:
                rankings.append(_ranking_row(member, ref, by_ref.get(ref)))
        return rankings

    def rank(self, template_id=None, department=None, role=None, month=None, year=None,
             page=1, limit=config.STATS_PAGE_LIMIT):
        """
        Leaderboard for one period. ``statistics`` always covers every row;
        ``rankings`` holds the requested page of them.
        """
        if page < 1 or limit < 1:
            raise ValidationError('page and limit must be positive')
        now = self.clock()
        month_num, year_num = resolve_period(month, year, now)
        month_name, year_label = period_label(month_num, year_num)

        all_members = self.members.filter_excluded(list(self.members.iter_members()))
        population = [
            m for m in all_members
            if (not department or m.department_slug == department) and (not role or m.role == role)
        ]

        entries = self._load_entries(month_num, year_num, template_id)
        logger.info(
            f"Statistics for {month_num}/{year_num}: {len(entries)} entries, "
            f"{len(population)} members (template={template_id}, department={department}, role={role})"
        )

        if not entries:
            raise NotFound(
                f"No KPI entries found for {month_name} {year_label}. "
                "Please ensure monthly entries are generated first.",
                title='No KPI Entries Found',
            )

        past = is_past_period(month_num, year_num, now)
        if past and not any(e['status'] == EntryStatus.GENERATED for e in entries):
            raise NotFound(
                f"No generated KPI reports found for {month_name} {year_label}. "
                "Please generate reports first before viewing statistics.",
                title='No Generated Reports Found',
            )

        rankings = self.build_rankings(population, entries)
        rankings = apply_past_ranking(rankings) if past else apply_current_ranking(rankings)

        envelope = paginate(rankings[(page - 1) * limit:page * limit], len(rankings), page, limit)

        return {
            'rankings': envelope.pop('docs'),
            'statistics': summarize(rankings),
            'pagination': envelope,
            'department': department or 'All Departments',
            'role': role or 'All Roles',
            'templateId': template_id or 'All Templates',
            'month': month_name,
            'year': year_label,
            'period': {'month': month_num, 'year': year_num, 'isPast': past},
            'availableFilters': {
                'departments': sorted({m.department_slug for m in all_members}),
                'roles': sorted({m.role for m in all_members}),
            },
        }
