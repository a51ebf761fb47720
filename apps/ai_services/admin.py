"""AI Services Admin"""
from django.contrib import admin

from .models import DocumentChunk, KnowledgeDocument


class DocumentChunkInline(admin.TabularInline):
    model = DocumentChunk
    extra = 0
    readonly_fields = ['position', 'content']
    can_delete = False


@admin.register(KnowledgeDocument)
class KnowledgeDocumentAdmin(admin.ModelAdmin):
    list_display = ['title', 'source', 'department', 'ai_indexed', 'ai_indexed_at', 'created_at']
    list_filter = ['source', 'ai_indexed', 'department']
    search_fields = ['title']
    readonly_fields = ['ai_indexed', 'ai_indexed_at', 'index_error']
    inlines = [DocumentChunkInline]
