"""AI Models"""
from django.db import models
from django.utils import timezone

from apps.core.models import BaseEntity, SoftDeleteModel


class KnowledgeDocument(BaseEntity, SoftDeleteModel):
    """A file that feeds the knowledge base once indexed"""

    class Source(models.TextChoices):
        KPI_RESOURCE = 'KPI_RESOURCE', 'KPI resource'
        COMPANY_DOCUMENT = 'COMPANY_DOCUMENT', 'Company document'
        KPI_LIBRARY_UPLOAD = 'KPI_LIBRARY_UPLOAD', 'KPI library upload'

    source = models.CharField(max_length=30, choices=Source.choices, db_index=True)
    title = models.CharField(max_length=255)
    file = models.FileField(upload_to='knowledge/%Y/%m/', blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    department = models.CharField(max_length=100, blank=True)

    ai_indexed = models.BooleanField(default=False, db_index=True)
    ai_indexed_at = models.DateTimeField(null=True, blank=True)
    index_error = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['source', 'ai_indexed']),
        ]

    def __str__(self):
        return f"{self.get_source_display()}: {self.title}"

    def mark_indexed(self):
        self.ai_indexed = True
        self.ai_indexed_at = timezone.now()
        self.index_error = ''
        self.save(update_fields=['ai_indexed', 'ai_indexed_at', 'index_error', 'updated_at'])

    def mark_index_failed(self, reason: str):
        self.index_error = reason
        self.save(update_fields=['index_error', 'updated_at'])


class DocumentChunk(models.Model):
    document = models.ForeignKey(KnowledgeDocument, on_delete=models.CASCADE, related_name='chunks')
    position = models.PositiveIntegerField()
    content = models.TextField()

    class Meta:
        ordering = ['document', 'position']
        constraints = [
            models.UniqueConstraint(fields=['document', 'position'], name='unique_document_chunk_position'),
        ]

    def __str__(self):
        return f"{self.document_id}#{self.position}"
