from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import OrgUnitViewSet

router = SimpleRouter()
router.register('', OrgUnitViewSet, basename='org-unit')

urlpatterns = [
    path('', include(router.urls)),
]
