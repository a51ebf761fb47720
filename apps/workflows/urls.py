"""Approval URLs"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import ApprovalViewSet

router = SimpleRouter()
router.register(r'', ApprovalViewSet, basename='approval')

urlpatterns = [
    path('', include(router.urls)),
]
