# services/scoring_service.py

import json
import logging
import math

from ..constants import KpiType
from ..errors import ValidationError

logger = logging.getLogger(__name__)


def is_number(value):
    # bool is an int subclass, but True is not a KPI reading
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    # NaN and Infinity are rejected
    return isinstance(value, float) and math.isfinite(value)


def type_name(value):
    if isinstance(value, bool):
        return 'boolean'
    if is_number(value):
        return 'number'
    if isinstance(value, float):
        return 'non-finite number'
    if isinstance(value, str):
        return 'string'
    if value is None:
        return 'null'
    return type(value).__name__


def values_match(raw, expected):
    """Exact-match comparison that never confuses booleans with numbers."""
    if isinstance(raw, bool):
        if isinstance(expected, bool):
            return raw is expected
        if isinstance(expected, str):
            return expected.strip().lower() == ('true' if raw else 'false')
        return False
    if isinstance(expected, bool):
        return False
    if is_number(raw) and is_number(expected):
        return raw == expected
    if isinstance(raw, str) and isinstance(expected, str):
        return raw == expected
    return False


class ScoringService:
    """Maps raw KPI readings to scores using the rules attached to each template item."""

    def calculate_score(self, value, scoring_rules, kpi_type=None, kpi_name=None):
        logger.debug(
            f'Calculating score for KPI "{kpi_name}" ({kpi_type}): value={value}, '
            f'rules={json.dumps([r.to_dict() for r in scoring_rules])}'
        )

        # Direct score entry: the reading is the score
        if kpi_type == KpiType.SCORE and is_number(value):
            return value

        if kpi_type == KpiType.PERCENTAGE and is_number(value):
            thresholds = [r for r in scoring_rules if is_number(r.value)]
            # Stable sort: among equal thresholds the first declared rule wins
            thresholds.sort(key=lambda r: r.value, reverse=True)
            for rule in thresholds:
                if value >= rule.value:
                    return rule.score
            logger.warning(f'No percentage rule matched for KPI "{kpi_name}" with value {value}%')
            return 0

        if is_number(value):
            for rule in scoring_rules:
                if rule.is_range and rule.min <= value <= rule.max:
                    return rule.score

        for rule in scoring_rules:
            if not rule.is_range and rule.is_exact and values_match(value, rule.value):
                return rule.score

        logger.warning(f'No scoring rule matched for KPI "{kpi_name}" with value {value}')
        return 0

    def validate_value_type(self, name, value, kpi_type):
        if kpi_type in KpiType.NUMERIC and not is_number(value):
            raise ValidationError(
                f"KPI {name} expects numeric value, got {type_name(value)}",
                title='Invalid value type',
            )
        if kpi_type == KpiType.BINARY and not isinstance(value, bool):
            raise ValidationError(
                f"KPI {name} expects boolean value, got {type_name(value)}",
                title='Invalid value type',
            )

    def validate_required_values(self, values, template_items):
        provided = {v.get('name') for v in values}
        missing = [item.name for item in template_items
                   if not item.is_dynamic and item.name not in provided]
        if missing:
            raise ValidationError(
                f"Missing required values for non-dynamic KPIs: {', '.join(missing)}. "
                "All KPI items with isDynamic: false must be provided in the entry.",
                title='Missing required values',
            )

    def _check_shape(self, values):
        if not isinstance(values, list):
            raise ValidationError("values must be a list", title='Malformed values')
        seen = set()
        for v in values:
            if not isinstance(v, dict) or not v.get('name') or 'value' not in v:
                raise ValidationError(
                    "Each value must be an object with 'name' and 'value'",
                    title='Malformed values',
                )
            if v['name'] in seen:
                raise ValidationError(f"KPI {v['name']} was submitted more than once",
                                      title='Duplicate value')
            seen.add(v['name'])

    def validate_and_calculate_scores(self, values, template_items):
        """
        Check the submitted value set against the template and score each accepted item.

        Returns the accepted values (same shape as submitted, with ``score`` and
        ``isByPassed`` filled in). Items that are not part of the template are
        dropped.
        """
        self._check_shape(values)
        self.validate_required_values(values, template_items)

        items_by_name = {item.name: item for item in template_items}
        validated = []

        for value in values:
            item = items_by_name.get(value['name'])
            if item is None:
                logger.warning(f"Template item not found for KPI: {value['name']}")
                continue

            if value.get('isByPassed'):
                if not is_number(value.get('score')):
                    raise ValidationError(
                        f"Bypassed KPI {value['name']} must have a numeric score field",
                        title='Missing score field',
                    )
                score = value['score']
            else:
                if value.get('score') is not None:
                    logger.warning(
                        f"Score field ignored for non-bypassed KPI: {value['name']}. "
                        "Score will be calculated automatically."
                    )
                self.validate_value_type(value['name'], value['value'], item.kpi_type)
                score = self.calculate_score(value['value'], item.scoring_rules,
                                             item.kpi_type, value['name'])

            accepted = {
                'name': value['name'],
                'value': value['value'],
                'score': score,
                'isByPassed': bool(value.get('isByPassed', False)),
            }
            if value.get('comments'):
                accepted['comments'] = value['comments']
            validated.append(accepted)

        return validated

    @staticmethod
    def calculate_total(values):
        return sum(v['score'] for v in values)
