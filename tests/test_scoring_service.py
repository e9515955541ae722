"""
Scoring evaluator tests.
"""

import pytest

from kpi_server.errors import ValidationError
from kpi_server.models import ScoringRule, TemplateItem
from kpi_server.services.scoring_service import ScoringService, values_match

PERCENT_RULES = [
    ScoringRule(score=10, value=90),
    ScoringRule(score=7, value=75),
    ScoringRule(score=4, value=50),
]


@pytest.fixture
def scoring():
    return ScoringService()


def _items():
    return [
        TemplateItem("Disposal rate", 10, "percentage", list(PERCENT_RULES)),
        TemplateItem("Visits", 5, "quantitative", [
            ScoringRule(score=1, min=0, max=4),
            ScoringRule(score=5, min=5, max=100),
        ]),
        TemplateItem("Register updated", 2, "binary", [
            ScoringRule(score=2, value=True),
            ScoringRule(score=0, value=False),
        ]),
        TemplateItem("Grade", 3, "qualitative", [
            ScoringRule(score=3, value="good"),
            ScoringRule(score=1, value="poor"),
        ]),
        TemplateItem("Drive", 3, "score", [], is_dynamic=True),
    ]


class TestCalculateScore:
    @pytest.mark.parametrize("value,expected", [(80, 7), (95, 10), (40, 0), (90, 10), (50, 4)])
    def test_percentage_thresholds(self, scoring, value, expected):
        assert scoring.calculate_score(value, PERCENT_RULES, "percentage") == expected

    def test_percentage_rule_order_does_not_matter(self, scoring):
        shuffled = [PERCENT_RULES[2], PERCENT_RULES[0], PERCENT_RULES[1]]
        assert scoring.calculate_score(80, shuffled, "percentage") == 7

    def test_duplicate_threshold_first_declared_wins(self, scoring):
        rules = [ScoringRule(score=6, value=75), ScoringRule(score=9, value=75)]
        assert scoring.calculate_score(80, rules, "percentage") == 6

    def test_score_kind_is_identity(self, scoring):
        assert scoring.calculate_score(2.5, [], "score") == 2.5

    def test_range_inclusive_bounds(self, scoring):
        rules = [ScoringRule(score=1, min=0, max=4), ScoringRule(score=5, min=5, max=100)]
        assert scoring.calculate_score(4, rules, "quantitative") == 1
        assert scoring.calculate_score(5, rules, "quantitative") == 5
        assert scoring.calculate_score(100, rules, "quantitative") == 5

    def test_range_tried_before_exact(self, scoring):
        rules = [ScoringRule(score=9, value=3), ScoringRule(score=2, min=0, max=10)]
        assert scoring.calculate_score(3, rules, "quantitative") == 2

    def test_no_match_scores_zero(self, scoring):
        rules = [ScoringRule(score=1, min=0, max=4)]
        assert scoring.calculate_score(50, rules, "quantitative") == 0

    def test_boolean_exact_match(self, scoring):
        rules = [ScoringRule(score=2, value=True), ScoringRule(score=0, value=False)]
        assert scoring.calculate_score(True, rules, "binary") == 2
        assert scoring.calculate_score(False, rules, "binary") == 0

    def test_string_exact_match(self, scoring):
        rules = [ScoringRule(score=3, value="good"), ScoringRule(score=1, value="poor")]
        assert scoring.calculate_score("poor", rules, "qualitative") == 1
        assert scoring.calculate_score("unknown", rules, "qualitative") == 0


class TestValuesMatch:
    def test_boolean_never_equals_number(self):
        assert not values_match(True, 1)
        assert not values_match(1, True)
        assert not values_match(False, 0)

    def test_boolean_matches_text_form(self):
        assert values_match(True, "true")
        assert values_match(False, " False ")
        assert not values_match(True, "yes")

    def test_numbers_compare_by_value(self):
        assert values_match(3, 3.0)
        assert not values_match("3", 3)


class TestValidateAndCalculate:
    def test_scores_each_item(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 80},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good", "comments": "steady"},
        ]
        result = scoring.validate_and_calculate_scores(values, _items())

        assert [v["score"] for v in result] == [7, 5, 2, 3]
        assert all(v["isByPassed"] is False for v in result)
        assert result[3]["comments"] == "steady"
        assert scoring.calculate_total(result) == 17

    def test_missing_non_dynamic_item_rejected(self, scoring):
        values = [{"name": "Disposal rate", "value": 80}]
        with pytest.raises(ValidationError) as exc:
            scoring.validate_and_calculate_scores(values, _items())
        assert "Visits" in exc.value.message
        assert "Register updated" in exc.value.message
        assert "Drive" not in exc.value.message

    def test_numeric_item_rejects_text(self, scoring):
        values = [
            {"name": "Disposal rate", "value": "80"},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
        ]
        with pytest.raises(ValidationError) as exc:
            scoring.validate_and_calculate_scores(values, _items())
        assert exc.value.message == "KPI Disposal rate expects numeric value, got string"

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_reading_rejected(self, scoring, bad):
        values = [
            {"name": "Disposal rate", "value": 80},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
            {"name": "Drive", "value": bad},
        ]
        with pytest.raises(ValidationError) as exc:
            scoring.validate_and_calculate_scores(values, _items())
        assert exc.value.message == "KPI Drive expects numeric value, got non-finite number"

    def test_non_finite_bypass_score_rejected(self, scoring):
        values = [
            {"name": "Disposal rate", "value": "n/a", "isByPassed": True, "score": float("nan")},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
        ]
        with pytest.raises(ValidationError) as exc:
            scoring.validate_and_calculate_scores(values, _items())
        assert "Disposal rate" in exc.value.message

    def test_binary_item_rejects_number(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 80},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": 1},
            {"name": "Grade", "value": "good"},
        ]
        with pytest.raises(ValidationError) as exc:
            scoring.validate_and_calculate_scores(values, _items())
        assert "expects boolean value, got number" in exc.value.message

    def test_bypass_uses_supplied_score(self, scoring):
        values = [
            {"name": "Disposal rate", "value": "n/a", "isByPassed": True, "score": 6},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": False},
            {"name": "Grade", "value": "poor"},
        ]
        result = scoring.validate_and_calculate_scores(values, _items())
        assert result[0]["score"] == 6
        assert result[0]["isByPassed"] is True
        assert scoring.calculate_total(result) == 6 + 5 + 0 + 1

    def test_bypass_without_score_rejected(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 80, "isByPassed": True},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
        ]
        with pytest.raises(ValidationError):
            scoring.validate_and_calculate_scores(values, _items())

    def test_supplied_score_ignored_when_not_bypassed(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 95, "score": 1},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
        ]
        result = scoring.validate_and_calculate_scores(values, _items())
        assert result[0]["score"] == 10

    def test_unknown_items_dropped(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 95},
            {"name": "Visits", "value": 7},
            {"name": "Register updated", "value": True},
            {"name": "Grade", "value": "good"},
            {"name": "Not on template", "value": 100},
        ]
        result = scoring.validate_and_calculate_scores(values, _items())
        assert "Not on template" not in [v["name"] for v in result]
        assert len(result) == 4

    def test_duplicate_names_rejected(self, scoring):
        values = [
            {"name": "Visits", "value": 7},
            {"name": "Visits", "value": 2},
        ]
        with pytest.raises(ValidationError):
            scoring.validate_and_calculate_scores(values, _items())

    def test_dynamic_item_scored_when_present(self, scoring):
        values = [
            {"name": "Disposal rate", "value": 40},
            {"name": "Visits", "value": 0},
            {"name": "Register updated", "value": False},
            {"name": "Grade", "value": "poor"},
            {"name": "Drive", "value": 2},
        ]
        result = scoring.validate_and_calculate_scores(values, _items())
        assert result[-1]["score"] == 2
        assert scoring.calculate_total(result) == 0 + 1 + 0 + 1 + 2
