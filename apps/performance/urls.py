"""Performance URLs"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import CycleViewSet, DashboardView, KpiActualViewSet, KpiDefinitionViewSet

router = DefaultRouter()
router.register(r'cycles', CycleViewSet, basename='cycle')
router.register(r'kpis', KpiDefinitionViewSet, basename='kpi')
router.register(r'actuals', KpiActualViewSet, basename='actual')

urlpatterns = [
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
    path('', include(router.urls)),
]
