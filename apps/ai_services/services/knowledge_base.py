"""Knowledge base: chunked document text with keyword retrieval"""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction

from apps.ai_services.models import DocumentChunk, KnowledgeDocument
from .text_extraction import extract_text

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r'[a-z0-9]+')


def _chunk_size() -> int:
    return int(getattr(settings, 'KNOWLEDGE_CHUNK_SIZE', 1000))


def split_into_chunks(text: str, size: int) -> List[str]:
    """Split on whitespace so no chunk is longer than ``size`` unless a single word is."""
    chunks, current, length = [], [], 0
    for word in text.split():
        extra = len(word) + (1 if current else 0)
        if current and length + extra > size:
            chunks.append(' '.join(current))
            current, length = [], 0
            extra = len(word)
        current.append(word)
        length += extra
    if current:
        chunks.append(' '.join(current))
    return chunks


def _words(text: str) -> List[str]:
    return WORD_PATTERN.findall(text.lower())


class KnowledgeBaseService:

    @staticmethod
    def document_text(document: KnowledgeDocument) -> str:
        fallback = f"{document.title}\n{document.get_source_display()}\n{document.department}"
        file_name = document.file.name if document.file else ''
        if file_name:
            fallback = f"{fallback}\n{file_name}"
        return extract_text(document.file, document.mime_type, fallback=fallback)

    @classmethod
    @transaction.atomic
    def index_document(cls, document: KnowledgeDocument) -> int:
        """Replace the stored chunks of ``document``; returns the chunk count."""
        text = cls.document_text(document)
        chunks = split_into_chunks(text, _chunk_size())
        if not chunks:
            raise ValueError('Document has no extractable text')

        document.chunks.all().delete()
        DocumentChunk.objects.bulk_create([
            DocumentChunk(document=document, position=position, content=content)
            for position, content in enumerate(chunks)
        ])
        document.mark_indexed()
        logger.info("Indexed document %s into %s chunk(s)", document.id, len(chunks))
        return len(chunks)

    @staticmethod
    def retrieve_context(query: str, department: Optional[str] = None, limit: int = 3) -> List[Dict]:
        terms = set(_words(query))
        if not terms:
            return []

        chunks = DocumentChunk.objects.select_related('document').filter(
            document__ai_indexed=True,
            document__is_deleted=False,
        )
        if department:
            chunks = chunks.filter(document__department__iexact=department)

        ranked = []
        for chunk in chunks.iterator():
            counts = Counter(_words(chunk.content))
            hits = sum(counts[term] for term in terms)
            if hits:
                ranked.append((hits, chunk))

        ranked.sort(key=lambda item: (-item[0], item[1].document.title, item[1].position))
        return [
            {
                'document_id': str(chunk.document_id),
                'title': chunk.document.title,
                'position': chunk.position,
                'content': chunk.content,
                'score': hits,
            }
            for hits, chunk in ranked[:limit]
        ]
