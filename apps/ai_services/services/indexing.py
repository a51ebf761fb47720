"""Bulk indexing of documents that are not yet in the knowledge base"""
from __future__ import annotations

import logging
from typing import Dict

from django.db import transaction
from django.db.models import Count, Q

from apps.ai_services.models import KnowledgeDocument
from .knowledge_base import KnowledgeBaseService

logger = logging.getLogger(__name__)

INDEXING_LOCK_NAME = 'indexing-all-documents'


class DocumentIndexer:

    def __init__(self, knowledge_base=KnowledgeBaseService):
        self.knowledge_base = knowledge_base

    def index_pending(self) -> Dict:
        """
        Index every unindexed document. A failing document is recorded and
        the batch carries on.
        """
        indexed = 0
        errors = []
        for document in KnowledgeDocument.objects.filter(ai_indexed=False).order_by('created_at'):
            try:
                with transaction.atomic():
                    self.knowledge_base.index_document(document)
            except Exception as exc:
                logger.exception("Failed to index document %s", document.id)
                document.mark_index_failed(str(exc))
                errors.append({'id': str(document.id), 'error': str(exc)})
                continue
            indexed += 1

        logger.info("Indexing batch finished: %s indexed, %s failed", indexed, len(errors))
        return {'indexed': indexed, 'failed': len(errors), 'errors': errors}

    @staticmethod
    def status() -> Dict:
        rows = (
            KnowledgeDocument.objects.values('source')
            .annotate(total=Count('id'), indexed=Count('id', filter=Q(ai_indexed=True)))
        )
        by_source = {source: {'total': 0, 'indexed': 0, 'pending': 0} for source in KnowledgeDocument.Source.values}
        for row in rows:
            by_source[row['source']] = {
                'total': row['total'],
                'indexed': row['indexed'],
                'pending': row['total'] - row['indexed'],
            }
        totals = {
            key: sum(counts[key] for counts in by_source.values())
            for key in ('total', 'indexed', 'pending')
        }
        return {**totals, 'by_source': by_source}
