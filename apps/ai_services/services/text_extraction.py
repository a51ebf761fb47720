"""Mocked OCR: pull text and numbers out of uploaded files"""
from __future__ import annotations

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

TEXT_MIME_PREFIXES = ('text/', 'application/json')
NUMBER_PATTERN = re.compile(r'-?\d[\d,]*(?:\.\d+)?')


def extract_text(field_file, mime_type: str = '', fallback: str = '') -> str:
    """
    Decode plain-text files. Anything else falls back to ``fallback``
    (usually the file name and metadata) as real OCR is not wired in.
    """
    if not field_file:
        return fallback
    if not mime_type.startswith(TEXT_MIME_PREFIXES):
        return fallback
    field_file.open('rb')
    try:
        raw = field_file.read()
    finally:
        field_file.close()
    return raw.decode('utf-8', errors='replace')


def extract_numbers(text: str) -> List[float]:
    values = []
    for match in NUMBER_PATTERN.findall(text or ''):
        try:
            values.append(float(match.replace(',', '')))
        except ValueError:
            logger.debug("Skipping unparsable number %r", match)
    return values
