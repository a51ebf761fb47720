"""
KPI set validation.

All checks run in one pass and are reported as human-readable strings so a
client can show the complete list. Errors block submission, warnings do not.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Sequence

from django.conf import settings

UNBALANCED_WEIGHT_SPREAD = 15
SHORT_TITLE_LENGTH = 10
SMART_WARNING_THRESHOLD = 60
ACHIEVABLE_TARGET_CEILING = 1_000_000


@dataclass(frozen=True)
class ValidationRules:
    min_kpis: int = 3
    max_kpis: int = 5
    min_weight: Decimal = Decimal('5')
    max_weight: Decimal = Decimal('40')
    total_weight: Decimal = Decimal('100')

    @classmethod
    def from_settings(cls) -> 'ValidationRules':
        return cls(
            min_kpis=getattr(settings, 'KPI_MIN_KPIS', cls.min_kpis),
            max_kpis=getattr(settings, 'KPI_MAX_KPIS', cls.max_kpis),
            min_weight=_number(getattr(settings, 'KPI_MIN_WEIGHT', cls.min_weight)),
            max_weight=_number(getattr(settings, 'KPI_MAX_WEIGHT', cls.max_weight)),
            total_weight=_number(getattr(settings, 'KPI_TOTAL_WEIGHT', cls.total_weight)),
        )


@dataclass
class KpiInput:
    title: str = ''
    unit: str = ''
    target: Decimal = Decimal('0')
    weight: Decimal = Decimal('0')
    type: str = ''
    data_source: str = ''
    description: str = ''

    @classmethod
    def coerce(cls, value: Any) -> 'KpiInput':
        """Build from a ``KpiInput``, a mapping, or any object with matching attributes (e.g. a model)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            get = value.get
        else:
            def get(name, default=None):
                return getattr(value, name, default)
        return cls(
            title=get('title') or '',
            unit=get('unit') or '',
            target=_number(get('target')),
            weight=_number(get('weight')),
            type=get('type') or '',
            data_source=get('data_source') or get('dataSource') or '',
            description=get('description') or '',
        )


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict:
        return {'valid': self.valid, 'errors': self.errors, 'warnings': self.warnings}


def _number(value) -> Decimal:
    if value is None or value == '' or isinstance(value, bool):
        return Decimal('0')
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal('0')
    return number if number.is_finite() else Decimal('0')


def _fmt(value) -> str:
    return f"{_number(value).normalize():f}"


class KpiValidator:
    """Validates proposed KPI sets against count, weight and content rules."""

    def __init__(self, rules: Optional[ValidationRules] = None):
        self.rules = rules or ValidationRules.from_settings()

    def validate_set(self, kpis: Sequence[Any]) -> ValidationResult:
        rules = self.rules
        items = [KpiInput.coerce(kpi) for kpi in kpis]
        result = ValidationResult()

        if len(items) < rules.min_kpis:
            result.errors.append(f"You must create at least {rules.min_kpis} KPIs (currently {len(items)})")
        if len(items) > rules.max_kpis:
            result.errors.append(f"You cannot create more than {rules.max_kpis} KPIs (currently {len(items)})")

        total = sum(item.weight for item in items)
        if total != rules.total_weight:
            result.errors.append(
                f"Total weight must equal {_fmt(rules.total_weight)}% (currently {_fmt(total)}%)"
            )

        for number, item in enumerate(items, start=1):
            self._check_item(item, f"KPI {number}: ", result)

        titles = [item.title.strip().lower() for item in items if item.title.strip()]
        if len(titles) != len(set(titles)):
            result.errors.append('KPI titles must be unique')

        if not result.errors and items:
            average = total / len(items)
            if any(abs(item.weight - average) > UNBALANCED_WEIGHT_SPREAD for item in items):
                result.warnings.append('Consider balancing weights more evenly across KPIs')

        return result

    def validate_single(self, kpi: Any, current_kpis: Sequence[Any] = ()) -> ValidationResult:
        """Check one KPI being added next to ``current_kpis``."""
        item = KpiInput.coerce(kpi)
        result = ValidationResult()
        self._check_item(item, '', result, content_warnings=False)

        if len(current_kpis) >= self.rules.max_kpis:
            result.errors.append(f"Cannot add more than {self.rules.max_kpis} KPIs")

        if self.smart_score(item) < SMART_WARNING_THRESHOLD:
            result.warnings.append('KPI could be improved to meet SMART criteria better')
        return result

    def _check_item(self, item: KpiInput, prefix: str, result: ValidationResult, content_warnings: bool = True):
        rules = self.rules
        if not item.title.strip():
            result.errors.append(f"{prefix}Title is required")
        if not item.unit.strip():
            result.errors.append(f"{prefix}Unit of measurement is required")
        if item.target <= 0:
            result.errors.append(f"{prefix}Target must be greater than 0")
        if item.weight < rules.min_weight or item.weight > rules.max_weight:
            currently = f" (currently {_fmt(item.weight)}%)" if prefix else ''
            result.errors.append(
                f"{prefix}Weight must be between {_fmt(rules.min_weight)}% and {_fmt(rules.max_weight)}%{currently}"
            )

        if not content_warnings:
            return
        if not item.data_source.strip():
            result.warnings.append(f"{prefix}Data source is recommended for tracking")
        if item.title and len(item.title) < SHORT_TITLE_LENGTH:
            result.warnings.append(f"{prefix}Title could be more specific")
        if not item.description:
            result.warnings.append(f"{prefix}Adding a description helps clarify the objective")

    @staticmethod
    def smart_score(kpi: Any) -> int:
        """Heuristic 0-100 SMART score, 20 points per criterion."""
        item = KpiInput.coerce(kpi)
        score = 0

        # Specific
        if len(item.title) > 10:
            score += 20
        elif len(item.title) > 5:
            score += 10

        # Measurable
        if item.unit and item.target > 0:
            score += 20
        elif item.unit or item.target > 0:
            score += 10

        # Achievable
        if 0 < item.target < ACHIEVABLE_TARGET_CEILING:
            score += 20
        elif item.target > 0:
            score += 10

        # Relevant
        if item.data_source.strip():
            score += 20
        elif item.description.strip():
            score += 10

        # Time-bound: every KPI belongs to a cycle
        score += 20
        return min(score, 100)

    def suggest_weights(self, count: int) -> List[int]:
        """Even split of the total weight; the remainder goes to the first KPIs."""
        rules = self.rules
        if count < rules.min_kpis or count > rules.max_kpis:
            raise ValueError(f"Number of KPIs must be between {rules.min_kpis} and {rules.max_kpis}")
        total = int(rules.total_weight)
        base, remainder = divmod(total, count)
        return [base + 1 if index < remainder else base for index in range(count)]

        others = sum(KpiInput.coerce(kpi).weight for position, kpi in enumerate(kpis) if position != index)
        new_total = others + new_weight
        if new_total > rules.total_weight:
            result.errors.append(
                f"Weight cannot exceed {_fmt(rules.total_weight - others)}% (would make total {_fmt(new_total)}%)"
            )
        return result

    def summary(self, kpis: Sequence[Any]) -> str:
        rules = self.rules
        items = [KpiInput.coerce(kpi) for kpi in kpis]
        total = sum(item.weight for item in items)

        parts = [f"{len(items)}/{rules.min_kpis}-{rules.max_kpis} KPIs"]
        if total == rules.total_weight:
            parts.append(f"Weight {_fmt(total)}%")
        elif total < rules.total_weight:
            parts.append(f"Weight: {_fmt(total)}% ({_fmt(rules.total_weight - total)}% remaining)")
        else:
            parts.append(f"Weight: {_fmt(total)}% ({_fmt(total - rules.total_weight)}% over)")

        invalid = sum(1 for item in items if not rules.min_weight <= item.weight <= rules.max_weight)
        if invalid:
            parts.append(f"{invalid} KPI(s) with invalid weight")
        return ' | '.join(parts)
