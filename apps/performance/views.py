"""
Performance ViewSets: cycles, KPI goals and actual results
"""

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.core.exceptions import BusinessRuleException
from apps.core.permissions import IsAdminOrReadOnly
from apps.core.response import created_response, success_response
from apps.notifications.serializers import NotificationSerializer
from apps.workflows.models import Approval
from apps.workflows.serializers import ApprovalSerializer
from apps.workflows.services import ApprovalEngine
from apps.workflows.states import ACTUAL, KPI

from .filters import CycleFilter, KpiActualFilter, KpiDefinitionFilter
from .models import Cycle, KpiActual, KpiDefinition
from .permissions import visible_owner_filter
from .serializers import (
    CycleSerializer,
    DecisionSerializer,
    EvidenceSerializer,
    EvidenceUploadSerializer,
    KpiActualSerializer,
    KpiActualWriteSerializer,
    KpiDefinitionSerializer,
    KpiSetValidateSerializer,
    KpiSubmitSetSerializer,
    RejectionSerializer,
)
from .services.actual_service import ActualService
from .services.cycle_service import CycleService
from .services.dashboard_service import DashboardService
from .services.kpi_service import KpiService
from .services.validation import KpiValidator

logger = logging.getLogger(__name__)


class CycleViewSet(viewsets.ModelViewSet):
    """Review cycles. Everyone reads; admins create and move them through their statuses."""
    queryset = Cycle.objects.all()
    serializer_class = CycleSerializer
    permission_classes = [IsAdminOrReadOnly]
    filterset_class = CycleFilter
    search_fields = ['name']
    ordering_fields = ['period_start', 'name', 'created_at']

    def perform_create(self, serializer):
        cycle = serializer.save(created_by=self.request.user)
        logger.info('Cycle %s created by %s', cycle.id, self.request.user.id)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)

    def perform_destroy(self, instance):
        if instance.kpis.exists():
            raise ValidationError('Cycles with KPIs cannot be deleted')
        instance.delete()

    @action(detail=True, methods=['post'])
    def open(self, request, pk=None):
        cycle = CycleService.open(self.get_object(), actor=request.user)
        return success_response(data=self.get_serializer(cycle).data, message='Cycle opened')

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        cycle = CycleService.activate(self.get_object(), actor=request.user)
        return success_response(data=self.get_serializer(cycle).data, message='Cycle activated')

    @action(detail=True, methods=['post'])
    def close(self, request, pk=None):
        cycle = CycleService.close(self.get_object(), actor=request.user)
        return success_response(data=self.get_serializer(cycle).data, message='Cycle closed')

    @action(detail=True, methods=['post'], url_path='lock-goals')
    def lock_goals(self, request, pk=None):
        locked = CycleService.lock_goals(self.get_object(), actor=request.user)
        return success_response(data={'locked': locked}, message=f'{locked} KPI(s) locked')

    @action(detail=False, methods=['get'])
    def current(self, request):
        cycle = CycleService.current()
        if cycle is None:
            return success_response(data=None, message='No active cycle found')
        return success_response(data=self.get_serializer(cycle).data)


class ApprovalDecisionMixin:
    """``POST {id}/approve/`` approves the pending approval, ``PATCH`` rejects it."""
    entity_type = None
    entity_label = ''

    def _pending_approval(self, obj):
        approval = (
            Approval.objects.for_entity(self.entity_type, obj.pk)
            .pending()
            .order_by('level')
            .first()
        )
        if approval is None:
            raise BusinessRuleException(f'{self.entity_label} is not awaiting approval')
        return approval

    def _decide(self, request, obj):
        approval = self._pending_approval(obj)
        if request.method == 'PATCH':
            serializer = RejectionSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            ApprovalEngine.reject(approval, actor=request.user, comment=serializer.validated_data['comment'])
            message = 'Rejected successfully'
        else:
            serializer = DecisionSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            ApprovalEngine.approve(approval, actor=request.user, comment=serializer.validated_data['comment'])
            message = 'Approved successfully'

        obj.refresh_from_db()
        approval.refresh_from_db()
        return success_response(
            data={
                'entity': self.get_serializer(obj).data,
                'approval': ApprovalSerializer(approval).data,
            },
            message=message,
        )


class KpiDefinitionViewSet(ApprovalDecisionMixin,
                           mixins.CreateModelMixin,
                           mixins.RetrieveModelMixin,
                           mixins.UpdateModelMixin,
                           mixins.ListModelMixin,
                           viewsets.GenericViewSet):
    """
    KPI goals. Staff see their own, managers also their reports', admins all.
    KPIs are never deleted; they move through the approval workflow.
    """
    serializer_class = KpiDefinitionSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = KpiDefinitionFilter
    search_fields = ['title', 'description', 'category']
    ordering_fields = ['created_at', 'weight', 'title', 'status']
    entity_type = KPI
    entity_label = 'KPI'

    def get_queryset(self):
        queryset = KpiDefinition.objects.select_related('owner', 'cycle', 'approved_by')
        if self.action == 'approve':
            return queryset
        return queryset.filter(visible_owner_filter(self.request.user))

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        cycle = data.pop('cycle')
        kpi = KpiService.create(owner=request.user, cycle=cycle, **data)
        return created_response(data=self.get_serializer(kpi).data, message='KPI created')

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        kpi = self.get_object()
        serializer = self.get_serializer(kpi, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        fields.pop('cycle', None)
        kpi = KpiService.update(kpi, actor=request.user, **fields)
        return success_response(data=self.get_serializer(kpi).data, message='KPI updated')

    @action(detail=False, methods=['post'])
    def validate(self, request):
        serializer = KpiSetValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        kpis = serializer.validated_data['kpis']
        validator = KpiValidator()
        result = validator.validate_set(kpis)
        try:
            suggested = validator.suggest_weights(len(kpis))
        except ValueError:
            suggested = None
        return success_response(data={
            **result.as_dict(),
            'summary': validator.summary(kpis),
            'smart_scores': [validator.smart_score(kpi) for kpi in kpis],
            'suggested_weights': suggested,
        })

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        kpi, approval, result = KpiService.submit(self.get_object(), actor=request.user)
        return success_response(
            data={
                'kpi': self.get_serializer(kpi).data,
                'approval': ApprovalSerializer(approval).data,
                'warnings': result.warnings,
            },
            message='KPI submitted for approval',
        )

    @action(detail=False, methods=['post'], url_path='submit-set')
    def submit_set(self, request):
        serializer = KpiSubmitSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        kpis, approvals, result = KpiService.submit_set(
            owner=request.user,
            cycle=serializer.validated_data['cycle'],
        )
        return success_response(
            data={
                'kpis': self.get_serializer(kpis, many=True).data,
                'approvals': ApprovalSerializer(approvals, many=True).data,
                'warnings': result.warnings,
            },
            message=f'{len(kpis)} KPI(s) submitted for approval',
        )

    @action(detail=True, methods=['post', 'patch'])
    def approve(self, request, pk=None):
        return self._decide(request, self.get_object())


class KpiActualViewSet(ApprovalDecisionMixin,
                       mixins.RetrieveModelMixin,
                       mixins.ListModelMixin,
                       viewsets.GenericViewSet):
    """Monthly actual results with scoring, evidence and approval."""
    serializer_class = KpiActualSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = KpiActualFilter
    ordering_fields = ['period', 'created_at', 'score']
    entity_type = ACTUAL
    entity_label = 'Actual'

    def get_queryset(self):
        queryset = KpiActual.objects.select_related('kpi', 'owner').prefetch_related('evidence')
        if self.action == 'approve':
            return queryset
        return queryset.filter(visible_owner_filter(self.request.user))

    def create(self, request, *args, **kwargs):
        serializer = KpiActualWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actual, created = ActualService.record(
            owner=request.user,
            kpi=data['kpi'],
            period=data['period'],
            actual_value=data['actual_value'],
            self_comment=data['self_comment'],
            submit=data['submit'],
        )
        message = 'Actual submitted for approval' if data['submit'] else 'Actual saved as draft'
        http_status = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return success_response(data=self.get_serializer(actual).data, message=message, http_status=http_status)

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        actual = self.get_object()
        approval = ActualService.submit(actual, actor=request.user)
        actual.refresh_from_db()
        return success_response(
            data={'actual': self.get_serializer(actual).data, 'approval': ApprovalSerializer(approval).data},
            message='Actual submitted for approval',
        )

    @action(detail=True, methods=['post', 'patch'])
    def approve(self, request, pk=None):
        return self._decide(request, self.get_object())

    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def evidence(self, request, pk=None):
        actual = self.get_object()
        serializer = EvidenceUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        evidence = ActualService.attach_evidence(actual, upload=serializer.validated_data['file'], actor=request.user)
        return created_response(data=EvidenceSerializer(evidence).data, message='Evidence uploaded')

    @action(detail=True, methods=['post'])
    def verify(self, request, pk=None):
        actual = self.get_object()
        verdict = ActualService.verify(actual)
        actual.refresh_from_db()
        return success_response(
            data={'verification': verdict, 'actual': self.get_serializer(actual).data},
            message='Evidence verified' if verdict['passed'] else 'Evidence flagged for review',
        )


class DashboardView(APIView):
    """Summary counts for the caller's role"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = DashboardService.summary(request.user)
        cycle = data['active_cycle']
        data['active_cycle'] = CycleSerializer(cycle).data if cycle else None
        if 'pending_approvals' in data:
            items = data['pending_approvals']['items']
            data['pending_approvals']['items'] = ApprovalSerializer(items, many=True).data
        if 'notifications' in data:
            items = data['notifications']['items']
            data['notifications']['items'] = NotificationSerializer(items, many=True).data
        return success_response(data=data)
