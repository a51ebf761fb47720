"""
AI views: knowledge documents and the admin indexing trigger.

SECURITY:
- KnowledgeDocumentViewSet: authenticated read, ADMIN write
- IndexDocumentsView: ADMIN only
"""
import logging

from django.apps import apps
from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.views import APIView

from apps.core.exceptions import ConflictException
from apps.core.permissions import IsAdminOrReadOnly, IsAdminRole
from apps.core.response import success_response

from .models import KnowledgeDocument
from .serializers import ContextQuerySerializer, IndexingResultSerializer, KnowledgeDocumentSerializer
from .services import INDEXING_LOCK_NAME, DocumentIndexer, KnowledgeBaseService

logger = logging.getLogger(__name__)


class KnowledgeDocumentViewSet(viewsets.ModelViewSet):
    queryset = KnowledgeDocument.objects.all()
    serializer_class = KnowledgeDocumentSerializer
    permission_classes = [IsAdminOrReadOnly]
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    filterset_fields = ['source', 'department', 'ai_indexed']
    search_fields = ['title']
    ordering_fields = ['created_at', 'title']

    def perform_create(self, serializer):
        upload = serializer.validated_data.get('file')
        mime_type = getattr(upload, 'content_type', '') or ''
        serializer.save(created_by=self.request.user, mime_type=mime_type)

    def perform_update(self, serializer):
        upload = serializer.validated_data.get('file')
        if upload is not None:
            # New file means the stored chunks are stale
            serializer.save(
                updated_by=self.request.user,
                mime_type=getattr(upload, 'content_type', '') or '',
                ai_indexed=False,
            )
            return
        serializer.save(updated_by=self.request.user)

    @action(detail=False, methods=['get'])
    def context(self, request):
        query = ContextQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        chunks = KnowledgeBaseService.retrieve_context(
            data['q'],
            department=data['department'] or None,
            limit=data['limit'],
        )
        return success_response(data=chunks)


class IndexDocumentsView(APIView):
    """
    POST indexes every unindexed document; only one batch runs per process
    at a time. GET reports indexing progress per document source.
    """
    permission_classes = [IsAdminRole]
    lock_manager = None
    indexer_class = DocumentIndexer

    def get_lock_manager(self):
        if self.lock_manager is not None:
            return self.lock_manager
        return apps.get_app_config('ai_services').lock_manager

    @extend_schema(request=None, responses=IndexingResultSerializer)
    def post(self, request):
        locks = self.get_lock_manager()
        ttl = getattr(settings, 'INDEXING_LOCK_TTL_SECONDS', 300)
        token = locks.try_acquire(INDEXING_LOCK_NAME, ttl)
        if token is None:
            raise ConflictException('Indexing already in progress. Please wait.')

        logger.info("Document indexing started by %s", request.user.email)
        try:
            result = self.indexer_class().index_pending()
        finally:
            locks.release(token)
        return success_response(
            data=result,
            message=f"Indexed {result['indexed']} document(s), {result['failed']} failed",
        )

    def get(self, request):
        data = self.indexer_class.status()
        data['in_progress'] = self.get_lock_manager().is_locked(INDEXING_LOCK_NAME)
        return success_response(data=data)
