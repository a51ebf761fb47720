"""Change request URLs"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import ChangeRequestViewSet

router = SimpleRouter()
router.register(r'', ChangeRequestViewSet, basename='change-request')

urlpatterns = [
    path('', include(router.urls)),
]
