"""AI service layer"""
from .indexing import INDEXING_LOCK_NAME, DocumentIndexer
from .knowledge_base import KnowledgeBaseService
from .smart_validator import SmartValidator

__all__ = [
    'INDEXING_LOCK_NAME',
    'DocumentIndexer',
    'KnowledgeBaseService',
    'SmartValidator',
]
