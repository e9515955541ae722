"""
Statistics aggregator tests: ranking policies, sentinel rows and the summary block.
"""

import pytest

from conftest import full_values
from kpi_server.errors import NotFound, ValidationError
from kpi_server.services.statistics_service import summarize


@pytest.fixture
def june(batch, entries, template, org):
    """June 2025 entries: pat-1/H1 scored 14, pat-2 scored 17, pat-1/H2 untouched."""
    batch.generate_default_entries(template.id, 6, 2025)
    h1 = entries.get_entry_by_jurisdiction("pat-1", "H1", month=6, year=2025)
    pat2 = entries.get_entries(created_for="pat-2")["docs"][0]
    entries.submit_values(h1["id"], full_values(80, 6, True), "nodal-1")
    entries.submit_values(pat2["id"], full_values(95, 6, True), "nodal-1")
    return template


def _by_key(rankings):
    return {(r["memberId"], r["kpiref"]): r for r in rankings}


class TestCurrentPeriod:
    def test_rows_per_member_and_reference(self, stats, june):
        result = stats.rank()
        rows = _by_key(result["rankings"])

        assert set(rows) == {("pat-1", "H1"), ("pat-1", "H2"), ("pat-2", "no-kpiref")}
        assert rows[("pat-1", "H1")]["totalScore"] == 14
        assert rows[("pat-1", "H1")]["hasEntry"] is True
        assert rows[("pat-1", "H2")]["status"] == "created"
        assert rows[("pat-1", "H2")]["hasEntry"] is False
        assert rows[("pat-2", "no-kpiref")]["memberName"] == "Bhanu"
        assert rows[("pat-1", "H1")]["jurisdiction"] == ["T1", "H1", "H2"]

    def test_excluded_members_are_not_listed(self, stats, june):
        member_ids = {r["memberId"] for r in stats.rank()["rankings"]}
        assert member_ids.isdisjoint({"admin-1", "nodal-1", "nodal-2"})

    def test_status_priority_then_score_and_no_ranks_until_sealed(self, stats, june):
        rankings = stats.rank()["rankings"]
        assert [(r["memberId"], r["kpiref"]) for r in rankings] == [
            ("pat-2", "no-kpiref"),
            ("pat-1", "H1"),
            ("pat-1", "H2"),
        ]
        assert all(r["ranking"] == 0 for r in rankings)

    def test_sealed_rows_are_ranked(self, stats, batch, june):
        batch.generate_final_reports(june.id, 6, 2025)
        rankings = stats.rank()["rankings"]
        assert [r["ranking"] for r in rankings] == [1, 2, 3]
        assert [r["totalScore"] for r in rankings] == [17, 14, 0]
        assert all(r["hasEntry"] for r in rankings)

    def test_member_without_entry_gets_placeholder_row(self, stats, members, june):
        members.create_member("pat-4", "revenue", "patwari", name="Chetan")
        row = _by_key(stats.rank()["rankings"])[("pat-4", "no-kpiref")]
        assert row["status"] == "no-entry"
        assert row["entryId"] is None
        assert row["hasEntry"] is False
        assert row["totalScore"] == 0

    def test_nameless_member_reads_as_unknown(self, stats, members, june):
        members.create_member("pat-5", "revenue", "patwari")
        row = _by_key(stats.rank()["rankings"])[("pat-5", "no-kpiref")]
        assert row["memberName"] == "Unknown"
        assert row["memberEmail"] == "Unknown"

    def test_undivided_entry_read_next_to_tagged_entries(self, stats, entries, june):
        docs = entries.get_entries(month=6, year=2025)["docs"]
        pat2 = next(e for e in docs if e["createdFor"] == "pat-2")
        assert pat2["kpirefs"] is None
        assert sorted(e["kpirefs"] for e in docs if e["createdFor"] == "pat-1") == ["H1", "H2"]

        row = _by_key(stats.rank()["rankings"])[("pat-2", "no-kpiref")]
        assert row["entryId"] == pat2["id"]
        assert row["totalScore"] == 17

    def test_pagination_slices_rows_but_not_summary(self, stats, june):
        result = stats.rank(page=2, limit=2)

        assert [(r["memberId"], r["kpiref"]) for r in result["rankings"]] == [("pat-1", "H2")]
        assert result["statistics"]["totalRankings"] == 3
        assert result["pagination"] == {
            "total": 3,
            "page": 2,
            "limit": 2,
            "totalPages": 2,
            "hasNextPage": False,
            "hasPreviousPage": True,
        }

    def test_pagination_rejects_non_positive_values(self, stats, june):
        with pytest.raises(ValidationError):
            stats.rank(page=0)

    def test_summary(self, stats, june):
        summary = stats.rank()["statistics"]
        assert summary == {
            "totalRankings": 3,
            "rankingsWithEntries": 2,
            "rankingsWithoutEntries": 1,
            "averageScore": 15.5,
            "highestScore": 17,
            "lowestScore": 14,
            "completionRate": 67,
        }

    def test_labels_and_filters(self, stats, members, june):
        members.create_member("doc-1", "health", "medicalOfficer")
        result = stats.rank()

        assert result["month"] == "June"
        assert result["year"] == "2025"
        assert result["department"] == "All Departments"
        assert result["role"] == "All Roles"
        assert result["templateId"] == "All Templates"
        assert result["availableFilters"] == {
            "departments": ["health", "revenue"],
            "roles": ["medicalOfficer", "patwari"],
        }

    def test_department_filter_narrows_rows_not_filters(self, stats, members, june):
        members.create_member("doc-1", "health", "medicalOfficer")
        result = stats.rank(department="health")

        assert [r["memberId"] for r in result["rankings"]] == ["doc-1"]
        assert result["department"] == "health"
        assert result["availableFilters"]["departments"] == ["health", "revenue"]

    def test_template_filter(self, stats, june):
        result = stats.rank(template_id=june.id)
        assert result["templateId"] == june.id
        with pytest.raises(NotFound):
            stats.rank(template_id="other-template")

    def test_future_period_uses_current_policy(self, stats, batch, june):
        batch.generate_default_entries(june.id, 7, 2025)
        result = stats.rank(month=7, year=2025)
        assert result["period"]["isPast"] is False
        assert {r["status"] for r in result["rankings"]} == {"created"}


class TestPastPeriod:
    def test_requires_generated_reports(self, stats, clock, june):
        clock.set(2025, 7, 10)
        with pytest.raises(NotFound) as exc:
            stats.rank(month=6, year=2025)
        assert exc.value.title == "No Generated Reports Found"

    def test_only_sealed_rows_ranked_by_score(self, stats, batch, members, clock, june):
        batch.generate_final_reports(june.id, 6, 2025)
        members.create_member("pat-4", "revenue", "patwari", name="Chetan")
        clock.set(2025, 7, 10)

        rankings = stats.rank(month=-1)["rankings"]

        assert [(r["memberId"], r["ranking"]) for r in rankings] == [
            ("pat-2", 1),
            ("pat-1", 2),
            ("pat-1", 3),
            ("pat-4", 0),
        ]

    def test_relative_month_resolves_to_previous_period(self, stats, batch, clock, june):
        batch.generate_final_reports(june.id, 6, 2025)
        clock.set(2025, 7, 10)
        result = stats.rank(month=-1)
        assert (result["month"], result["year"]) == ("June", "2025")
        assert result["period"] == {"month": 6, "year": 2025, "isPast": True}

    def test_relative_year(self, stats, clock, june):
        clock.set(2026, 6, 10)
        with pytest.raises(NotFound):
            # June 2025 has entries but none are generated
            stats.rank(month=6, year=-1)


class TestEdges:
    def test_no_entries_for_period(self, stats, org):
        with pytest.raises(NotFound) as exc:
            stats.rank(month=5, year=2025)
        assert exc.value.title == "No KPI Entries Found"

    def test_month_zero_rejected(self, stats, org):
        with pytest.raises(ValidationError):
            stats.rank(month=0)

    def test_summary_of_empty_rankings(self):
        assert summarize([]) == {
            "totalRankings": 0,
            "rankingsWithEntries": 0,
            "rankingsWithoutEntries": 0,
            "averageScore": 0,
            "highestScore": 0,
            "lowestScore": 0,
            "completionRate": 0,
        }

    def test_summary_rounds_average(self):
        rows = [
            {"hasEntry": True, "totalScore": 10},
            {"hasEntry": True, "totalScore": 10},
            {"hasEntry": True, "totalScore": 11},
        ]
        assert summarize(rows)["averageScore"] == 10.33
        assert summarize(rows)["completionRate"] == 100
