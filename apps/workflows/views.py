"""
Approval inbox and admin proxy endpoints
"""

import logging

from django.db.models import BooleanField, Case, Value, When
from rest_framework import viewsets
from rest_framework.decorators import action

from apps.core.permissions import IsAdminRole, IsApproverRole, is_admin
from apps.core.response import success_response

from .filters import ApprovalFilter, ChangeRequestFilter, ProxyActionFilter
from .models import Approval, overdue_cutoff
from .serializers import (
    ApprovalDecisionSerializer,
    ApprovalSerializer,
    ApprovalStatsSerializer,
    ChangeRequestSerializer,
    IssueChangeRequestSerializer,
    ProxyActionSerializer,
    ProxyEntitySerializer,
    ProxyRejectSerializer,
    ReassignApproverSerializer,
    ResolveChangeRequestSerializer,
)
from .services import AdminProxyService, ApprovalEngine, ChangeRequestService

logger = logging.getLogger(__name__)


class ApprovalViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Approvals addressed to the caller. Lists default to PENDING items,
    overdue first and then newest first. Admins may pass ``scope=all``.
    """
    serializer_class = ApprovalSerializer
    permission_classes = [IsApproverRole]
    filterset_class = ApprovalFilter

    def get_queryset(self):
        user = self.request.user
        queryset = Approval.objects.select_related('approver', 'decided_by')
        if is_admin(user) and (self.action != 'list' or self.request.query_params.get('scope') == 'all'):
            scoped = queryset
        else:
            scoped = queryset.filter(approver=user)

        if self.action == 'list' and 'status' not in self.request.query_params:
            scoped = scoped.filter(status=Approval.Status.PENDING)

        return scoped.annotate(
            overdue=Case(
                When(status=Approval.Status.PENDING, created_at__lte=overdue_cutoff(), then=Value(True)),
                default=Value(False),
                output_field=BooleanField(),
            )
        ).order_by('-overdue', '-created_at')

    @action(detail=False, methods=['get'])
    def stats(self, request):
        user = request.user
        queryset = Approval.objects.all()
        if not (is_admin(user) and request.query_params.get('scope') == 'all'):
            queryset = queryset.filter(approver=user)
        stats = ApprovalStatsSerializer({
            'total': queryset.count(),
            'pending': queryset.filter(status=Approval.Status.PENDING).count(),
            'overdue': queryset.overdue().count(),
            'approved': queryset.filter(status=Approval.Status.APPROVED).count(),
            'rejected': queryset.filter(status=Approval.Status.REJECTED).count(),
        })
        return success_response(data=stats.data)

    @action(detail=True, methods=['post'])
    def decide(self, request, pk=None):
        approval = self.get_object()
        serializer = ApprovalDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        decision = serializer.validated_data['action']
        comment = serializer.validated_data['comment']

        if decision == ApprovalDecisionSerializer.APPROVE:
            ApprovalEngine.approve(approval, actor=request.user, comment=comment)
            message = 'Approved successfully'
        else:
            ApprovalEngine.reject(approval, actor=request.user, comment=comment)
            message = 'Rejected successfully'

        approval.refresh_from_db()
        return success_response(data=ApprovalSerializer(approval).data, message=message)


class AdminProxyViewSet(viewsets.GenericViewSet):
    """Admin overrides of the approval workflow. Every action needs a reason."""
    permission_classes = [IsAdminRole]
    serializer_class = ProxyActionSerializer
    filterset_class = ProxyActionFilter

    def get_queryset(self):
        return AdminProxyService.history()

    def _validated(self, serializer_class):
        serializer = serializer_class(data=self.request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @action(detail=False, methods=['post'], url_path='return-to-staff')
    def return_to_staff(self, request):
        data = self._validated(ProxyEntitySerializer)
        subject = AdminProxyService.return_to_staff(
            admin=request.user,
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            reason=data['reason'],
            comment=data['comment'],
        )
        return success_response(data=subject.summary(), message='Returned to staff')

    @action(detail=False, methods=['post'], url_path='approve-as-manager')
    def approve_as_manager(self, request):
        data = self._validated(ProxyEntitySerializer)
        subject = AdminProxyService.approve_as_manager(
            admin=request.user,
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            level=data.get('level'),
            reason=data['reason'],
            comment=data['comment'],
        )
        return success_response(data=subject.summary(), message='Approved on behalf of approver')

    @action(detail=False, methods=['post'], url_path='reject-as-manager')
    def reject_as_manager(self, request):
        data = self._validated(ProxyRejectSerializer)
        subject = AdminProxyService.reject_as_manager(
            admin=request.user,
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            level=data.get('level'),
            reason=data['reason'],
            comment=data['comment'],
        )
        return success_response(data=subject.summary(), message='Rejected on behalf of approver')

    @action(detail=False, methods=['post'], url_path='reassign-approver')
    def reassign_approver(self, request):
        data = self._validated(ReassignApproverSerializer)
        approval = AdminProxyService.reassign_approver(
            admin=request.user,
            approval=data['approval'],
            new_approver=data['new_approver'],
            reason=data['reason'],
            comment=data['comment'],
        )
        return success_response(data=ApprovalSerializer(approval).data, message='Approver reassigned')

    @action(detail=False, methods=['post'], url_path='issue-change-request')
    def issue_change_request(self, request):
        data = self._validated(IssueChangeRequestSerializer)
        change_request = AdminProxyService.issue_change_request(
            admin=request.user,
            kpi_id=data['kpi'],
            reason=data['reason'],
            comment=data['comment'],
            change_type=data['change_type'],
        )
        return success_response(data=ChangeRequestSerializer(change_request).data, message='Change request issued')

    @action(detail=False, methods=['get'])
    def history(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return success_response(data=self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        return success_response(data=AdminProxyService.statistics())


class ChangeRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Change requests on KPIs. Admins see all of them, everyone else only the
    ones on their own KPIs. ``POST {id}/resolve/`` is for the KPI owner.
    """
    serializer_class = ChangeRequestSerializer
    filterset_class = ChangeRequestFilter

    def get_queryset(self):
        return ChangeRequestService.for_user(self.request.user)

    @action(detail=True, methods=['post'])
    def resolve(self, request, pk=None):
        serializer = ResolveChangeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        change_request = ChangeRequestService.resolve(
            self.get_object(),
            actor=request.user,
            comment=serializer.validated_data['comment'],
        )
        change_request.refresh_from_db()
        return success_response(
            data=ChangeRequestSerializer(change_request).data,
            message='Change request marked as completed',
        )
