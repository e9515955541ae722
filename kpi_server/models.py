# models.py
"""
Domain types for templates and members.

Entries stay plain dicts (they travel straight from the store to the API);
templates and members carry behaviour, so they get dataclasses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import KpiType


@dataclass
class ScoringRule:
    score: float
    min: Optional[float] = None
    max: Optional[float] = None
    value: Any = None

    @property
    def is_range(self) -> bool:
        return self.min is not None and self.max is not None

    @property
    def is_exact(self) -> bool:
        return self.value is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringRule":
        return cls(
            score=data.get('score', 0),
            min=data.get('min'),
            max=data.get('max'),
            value=data.get('value'),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {'score': self.score}
        if self.min is not None:
            out['min'] = self.min
        if self.max is not None:
            out['max'] = self.max
        if self.value is not None:
            out['value'] = self.value
        return out


@dataclass
class TemplateItem:
    name: str
    max_marks: float
    kpi_type: str
    scoring_rules: List[ScoringRule] = field(default_factory=list)
    is_dynamic: bool = False
    description: Optional[str] = None
    kpi_unit: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateItem":
        return cls(
            name=data.get('name', ''),
            max_marks=data.get('maxMarks', 0),
            kpi_type=data.get('kpiType', KpiType.QUANTITATIVE),
            scoring_rules=[ScoringRule.from_dict(r) for r in data.get('scoringRules') or []],
            is_dynamic=bool(data.get('isDynamic', False)),
            description=data.get('description'),
            kpi_unit=data.get('kpiUnit'),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'name': self.name,
            'maxMarks': self.max_marks,
            'kpiType': self.kpi_type,
            'isDynamic': self.is_dynamic,
            'scoringRules': [r.to_dict() for r in self.scoring_rules],
        }
        if self.description:
            out['description'] = self.description
        if self.kpi_unit:
            out['kpiUnit'] = self.kpi_unit
        return out


@dataclass
class KpiTemplate:
    id: str
    name: str
    department_slug: str
    role: str
    frequency: str
    items: List[TemplateItem] = field(default_factory=list)
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'departmentSlug': self.department_slug,
            'role': self.role,
            'frequency': self.frequency,
            'template': [item.to_dict() for item in self.items],
            'isActive': self.is_active,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


# =========================================================================
# MEMBER METADATA (tagged by role)
# =========================================================================

def _str_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


@dataclass
class MemberMetadata:
    """Role-agnostic base. Subclasses decide where jurisdiction references come from."""

    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def kpirefs(self) -> List[str]:
        return _str_list(self.extra.get('kpirefs'))

    @property
    def jurisdiction(self) -> List[str]:
        explicit = self.extra.get('jurisdiction')
        if isinstance(explicit, list):
            return _str_list(explicit)
        return list(self.kpirefs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberMetadata":
        return cls(extra=dict(data))

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        out['kpirefs'] = self.kpirefs
        out['jurisdiction'] = self.jurisdiction
        out['isMultipleKPIRef'] = len(self.kpirefs) > 1
        return out


@dataclass
class _AreaMetadata(MemberMetadata):
    """Variants whose references are one named list, optionally under a tehsil."""

    refs: List[str] = field(default_factory=list)
    tehsil: Optional[str] = None

    ref_key = ''
    tehsil_in_jurisdiction = True

    @property
    def kpirefs(self) -> List[str]:
        return list(self.refs)

    @property
    def jurisdiction(self) -> List[str]:
        if not self.refs:
            return []
        if self.tehsil and self.tehsil_in_jurisdiction:
            return [self.tehsil] + self.kpirefs
        return self.kpirefs

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberMetadata":
        extra = {k: v for k, v in data.items()
                 if k not in (cls.ref_key, 'tehsil', 'kpirefs', 'jurisdiction', 'isMultipleKPIRef')}
        refs = data.get(cls.ref_key)
        if refs is None:
            refs = data.get('kpirefs')
        return cls(extra=extra, refs=_str_list(refs), tehsil=data.get('tehsil'))

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out[self.ref_key] = self.kpirefs
        if self.tehsil:
            out['tehsil'] = self.tehsil
        return out


@dataclass
class CircleMetadata(_AreaMetadata):
    ref_key = 'ri-circle'


@dataclass
class CourtMetadata(_AreaMetadata):
    ref_key = 'courts'
    tehsil_in_jurisdiction = False


@dataclass
class HalkaMetadata(_AreaMetadata):
    ref_key = 'halka'


METADATA_VARIANTS = {
    'ri': CircleMetadata,
    'tehsildar': CourtMetadata,
    'patwari': HalkaMetadata,
}


def parse_metadata(role: str, data: Optional[Dict[str, Any]]) -> MemberMetadata:
    variant = METADATA_VARIANTS.get(role, MemberMetadata)
    return variant.from_dict(data or {})


@dataclass
class Member:
    user_id: str
    department_slug: str
    role: str
    metadata: MemberMetadata = field(default_factory=MemberMetadata)
    name: Optional[str] = None
    email: Optional[str] = None
    id: Optional[str] = None

    @property
    def kpirefs(self) -> List[str]:
        return self.metadata.kpirefs

    @property
    def jurisdiction(self) -> List[str]:
        return self.metadata.jurisdiction
