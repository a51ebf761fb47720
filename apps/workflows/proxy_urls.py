"""Admin proxy URLs"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import AdminProxyViewSet

router = SimpleRouter()
router.register(r'', AdminProxyViewSet, basename='admin-proxy')

urlpatterns = [
    path('', include(router.urls)),
]
