"""
Achievement scoring for KPI actuals.

Pure functions: no database or settings access. Every calculator returns a
``ScoreResult``; bad input (non-positive target, empty milestone scale) yields
a zero result with band ``Invalid`` instead of raising.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

DEFAULT_CAP = 150.0

HIGHER_BETTER = 'QUANT_HIGHER_BETTER'
LOWER_BETTER = 'QUANT_LOWER_BETTER'
MILESTONE = 'MILESTONE'
BOOLEAN = 'BOOLEAN'
BEHAVIOR = 'BEHAVIOR'

ASCENDING = 'ASCENDING'
DESCENDING = 'DESCENDING'

MAX_SCALE_ENTRIES = 10

# (minimum percentage, score, band), checked top-down
SCORE_BANDS: Tuple[Tuple[float, int, str], ...] = (
    (120.0, 5, 'Outstanding'),
    (100.0, 4, 'Excellent'),
    (80.0, 3, 'Good'),
    (60.0, 2, 'Fair'),
)
LOWEST_BAND = (1, 'Needs Improvement')


@dataclass(frozen=True)
class ScoreResult:
    percentage: float
    score: int
    band: str
    explanation: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScaleEntry:
    threshold: float
    score_level: int


ScaleInput = Union[ScaleEntry, dict, Sequence[float]]


def _fmt(value: float) -> str:
    return f"{value:g}"


def _invalid(reason: str) -> ScoreResult:
    return ScoreResult(percentage=0.0, score=0, band='Invalid', explanation=reason)


def score_for_percentage(percentage: float) -> Tuple[int, str]:
    for floor, score, band in SCORE_BANDS:
        if percentage >= floor:
            return score, band
    return LOWEST_BAND


def calculate_higher_better(actual: float, target: float, cap: float = DEFAULT_CAP) -> ScoreResult:
    if target <= 0:
        return _invalid('Target must be greater than 0')
    percentage = min(actual / target * 100, cap)
    score, band = score_for_percentage(percentage)
    return ScoreResult(
        percentage=round(percentage, 1),
        score=score,
        band=band,
        explanation=f"Achieved {_fmt(actual)} out of {_fmt(target)} target ({percentage:.1f}%)",
    )


def calculate_lower_better(actual: float, target: float, cap: float = DEFAULT_CAP) -> ScoreResult:
    if target <= 0:
        return _invalid('Target must be greater than 0')
    if actual == 0:
        return ScoreResult(
            percentage=round(cap, 1),
            score=5,
            band='Excellent',
            explanation=f"Perfect achievement: {_fmt(actual)} (target was {_fmt(target)})",
        )
    percentage = min(target / actual * 100, cap)
    score, band = score_for_percentage(percentage)
    return ScoreResult(
        percentage=round(percentage, 1),
        score=score,
        band=band,
        explanation=f"Achieved {_fmt(actual)} vs {_fmt(target)} target ({percentage:.1f}%)",
    )


def calculate_boolean(done: bool) -> ScoreResult:
    if done:
        return ScoreResult(percentage=100.0, score=4, band='Achieved', explanation='Task completed')
    return ScoreResult(percentage=0.0, score=0, band='Not Achieved', explanation='Task not completed')


def normalize_scale(scale: Optional[Iterable[ScaleInput]]) -> List[ScaleEntry]:
    """
    Accept ``ScaleEntry`` objects, ``{"threshold", "score_level"}`` dicts
    (``scoreLevel`` also accepted) or ``(threshold, score_level)`` pairs.
    """
    entries = []
    for item in scale or []:
        if isinstance(item, ScaleEntry):
            entries.append(item)
        elif isinstance(item, dict):
            level = item.get('score_level', item.get('scoreLevel'))
            entries.append(ScaleEntry(threshold=float(item['threshold']), score_level=int(level)))
        else:
            threshold, level = item
            entries.append(ScaleEntry(threshold=float(threshold), score_level=int(level)))
    return entries


def detect_direction(scale: Sequence[ScaleEntry]) -> str:
    if len(scale) < 2:
        return ASCENDING
    return ASCENDING if scale[1].threshold > scale[0].threshold else DESCENDING


def validate_milestone_scale(scale: Iterable[ScaleInput]) -> List[str]:
    """Return a list of problems; empty means the scale is usable."""
    try:
        entries = normalize_scale(scale)
    except (KeyError, TypeError, ValueError):
        return ['Each scale entry needs a numeric threshold and score level']

    if not entries:
        return ['Scale must have at least 1 entry']
    if len(entries) > MAX_SCALE_ENTRIES:
        return [f'Scale cannot have more than {MAX_SCALE_ENTRIES} entries']

    errors = []
    if any(entry.score_level < 0 for entry in entries):
        errors.append('Score levels must not be negative')

    direction = detect_direction(entries)
    for previous, current in zip(entries, entries[1:]):
        thresholds_ordered = (
            current.threshold > previous.threshold
            if direction == ASCENDING
            else current.threshold < previous.threshold
        )
        if not thresholds_ordered:
            errors.append(f'Thresholds must be strictly {direction.lower()} (at {_fmt(current.threshold)})')
            break
        if current.score_level <= previous.score_level:
            errors.append('Score levels must strictly increase in threshold order')
            break
    return errors


def calculate_milestone(actual: float, scale: Iterable[ScaleInput]) -> ScoreResult:
    """
    Cascading threshold scale. Every entry the actual value satisfies is
    considered and the highest score level wins; the level is reported as
    both percentage and score.
    """
    entries = normalize_scale(scale)
    if not entries:
        return _invalid('Invalid scoring rules: minimum 1 scale entry required')

    direction = detect_direction(entries)
    if direction == ASCENDING:
        satisfied = [entry for entry in entries if actual >= entry.threshold]
    else:
        satisfied = [entry for entry in entries if actual <= entry.threshold]

    if not satisfied:
        return ScoreResult(
            percentage=0.0,
            score=0,
            band='Not Achieved',
            explanation=f"Actual {_fmt(actual)} does not reach any milestone threshold",
        )

    best = max(satisfied, key=lambda entry: entry.score_level)
    comparison = '>=' if direction == ASCENDING else '<='
    return ScoreResult(
        percentage=round(float(best.score_level), 1),
        score=best.score_level,
        band='Milestone Achieved',
        explanation=(
            f"Actual {_fmt(actual)} {comparison} threshold {_fmt(best.threshold)} "
            f"-> {best.score_level} points"
        ),
    )


def calculate_score(
    kpi_type: str,
    actual: float,
    target: float,
    scale: Optional[Iterable[ScaleInput]] = None,
    cap: float = DEFAULT_CAP,
) -> ScoreResult:
    """Dispatch on KPI type."""
    if kpi_type in (HIGHER_BETTER, BEHAVIOR):
        return calculate_higher_better(actual, target, cap)
    if kpi_type == LOWER_BETTER:
        return calculate_lower_better(actual, target, cap)
    if kpi_type == BOOLEAN:
        return calculate_boolean(actual != 0)
    if kpi_type == MILESTONE:
        return calculate_milestone(actual, scale or [])
    return _invalid(f'Unknown KPI type: {kpi_type}')
