"""AI Serializers"""
from rest_framework import serializers

from apps.core.upload_validators import validate_upload
from .models import KnowledgeDocument


class KnowledgeDocumentSerializer(serializers.ModelSerializer):
    file = serializers.FileField(validators=[validate_upload], required=False)
    chunk_count = serializers.IntegerField(source='chunks.count', read_only=True)

    class Meta:
        model = KnowledgeDocument
        fields = [
            'id', 'source', 'title', 'file', 'mime_type', 'department',
            'ai_indexed', 'ai_indexed_at', 'index_error', 'chunk_count',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'mime_type', 'ai_indexed', 'ai_indexed_at', 'index_error',
            'created_by', 'created_at', 'updated_at',
        ]


class ContextQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=500)
    department = serializers.CharField(required=False, allow_blank=True, default='')
    limit = serializers.IntegerField(required=False, min_value=1, max_value=20, default=3)


class IndexingResultSerializer(serializers.Serializer):
    indexed = serializers.IntegerField()
    failed = serializers.IntegerField()
    errors = serializers.ListField(child=serializers.DictField())
