"""Admin-only AI endpoints"""
from django.urls import path

from .views import IndexDocumentsView

urlpatterns = [
    path('index-documents/', IndexDocumentsView.as_view(), name='index-documents'),
]
