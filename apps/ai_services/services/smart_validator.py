"""
Evidence plausibility checks for submitted actuals.

A stand-in for the OCR + LLM gatekeeper: text is extracted from the
uploaded evidence and compared against the claimed value with a handful of
deterministic rules.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from apps.performance.services import scoring
from .text_extraction import extract_numbers, extract_text

logger = logging.getLogger(__name__)

RELATIVE_TOLERANCE = 0.05
IMPLAUSIBLE_TARGET_MULTIPLE = 3


class SmartValidator:

    def __init__(self, tolerance: float = RELATIVE_TOLERANCE):
        self.tolerance = tolerance

    def validate_evidence(self, actual) -> Dict[str, Any]:
        kpi = actual.kpi
        claimed = float(actual.actual_value)
        target = float(kpi.target)
        discrepancies: List[str] = []

        documents = list(actual.evidence.all())
        if not documents:
            discrepancies.append('No evidence uploaded')

        texts = [
            extract_text(doc.file, doc.mime_type, fallback=doc.file_name)
            for doc in documents
        ]
        combined = '\n'.join(texts)
        extracted = extract_numbers(combined)

        if documents and not self._close_to(claimed, extracted):
            discrepancies.append(f"Claimed value {claimed:g} not found in evidence")

        if kpi.type == scoring.HIGHER_BETTER and target > 0 and claimed > target * IMPLAUSIBLE_TARGET_MULTIPLE:
            discrepancies.append(
                f"Claimed value {claimed:g} is more than {IMPLAUSIBLE_TARGET_MULTIPLE}x the target {target:g}"
            )

        if documents and not self._mentions_period(combined, actual.period):
            discrepancies.append(f"Evidence does not mention period {actual.period}")

        checks = 4
        confidence = round((checks - len(discrepancies)) / checks, 2)
        passed = not discrepancies
        logger.info(
            "Evidence check for actual %s: %s (%s discrepancies)",
            actual.id,
            'passed' if passed else 'flagged',
            len(discrepancies),
        )
        return {
            'passed': passed,
            'confidence': max(confidence, 0.0),
            'discrepancies': discrepancies,
            'extracted_values': extracted,
        }

    def _close_to(self, claimed: float, values: List[float]) -> bool:
        for value in values:
            if claimed == 0:
                if value == 0:
                    return True
            elif abs(value - claimed) / abs(claimed) <= self.tolerance:
                return True
        return False

    @staticmethod
    def _mentions_period(text: str, period: str) -> bool:
        if not period:
            return True
        year, _, month = period.partition('-')
        candidates = {period, f"{month}/{year}", f"{year}/{month}"}
        return any(candidate in text for candidate in candidates)
