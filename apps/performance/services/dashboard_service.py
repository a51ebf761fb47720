"""Role-based dashboard summaries"""
from __future__ import annotations

from typing import Dict

from django.contrib.auth import get_user_model
from django.db.models import Count, Q

from apps.ai_services.models import KnowledgeDocument
from apps.core.permissions import ROLE_LINE_MANAGER, ROLE_MANAGER, is_admin
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.performance.models import Cycle, KpiActual, KpiDefinition
from apps.workflows.models import Approval, ChangeRequest
from apps.workflows.states import PENDING_STATES, WorkflowStatus

from .cycle_service import CycleService

RECENT_ITEMS = 5


def _count_by(queryset, field: str) -> Dict[str, int]:
    rows = queryset.order_by().values(field).annotate(total=Count('id'))
    return {row[field]: row['total'] for row in rows}


def _kpi_counts(queryset) -> Dict:
    by_status = _count_by(queryset, 'status')
    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'draft': by_status.get(WorkflowStatus.DRAFT, 0),
        'pending': sum(by_status.get(state, 0) for state in PENDING_STATES),
        'approved': by_status.get(WorkflowStatus.APPROVED, 0),
        'locked': by_status.get(WorkflowStatus.LOCKED_GOALS, 0),
        'change_requested': by_status.get(WorkflowStatus.CHANGE_REQUESTED, 0),
    }


class DashboardService:
    """
    ``summary(user)`` picks the view by role: admins get system-wide
    counts, line managers and managers their team, staff their own work.
    """

    @classmethod
    def summary(cls, user) -> Dict:
        if is_admin(user):
            data = cls.admin_summary()
        elif user.has_role(ROLE_LINE_MANAGER, ROLE_MANAGER):
            data = cls.manager_summary(user)
        else:
            data = cls.staff_summary(user)
        data.update({
            'active_cycle': CycleService.current(),
            'user_role': user.role,
            'user_name': user.name,
        })
        return data

    @staticmethod
    def admin_summary() -> Dict:
        users = get_user_model().objects.all()
        cycles = _count_by(Cycle.objects.all(), 'status')
        change_requests = _count_by(ChangeRequest.objects.all(), 'status')
        documents = KnowledgeDocument.objects.all()
        pending_approvals = Approval.objects.pending()
        return {
            'cycles': {
                'total': sum(cycles.values()),
                'active': cycles.get(Cycle.Status.ACTIVE, 0),
                'closed': cycles.get(Cycle.Status.CLOSED, 0),
            },
            'users': {
                'total': users.count(),
                'active': users.filter(status=get_user_model().Status.ACTIVE).count(),
                'by_role': _count_by(users, 'role'),
            },
            'kpis': _kpi_counts(KpiDefinition.objects.all()),
            'approvals': {
                'pending': pending_approvals.count(),
                'overdue': pending_approvals.overdue().count(),
            },
            'change_requests': {
                'total': sum(change_requests.values()),
                'pending': change_requests.get(ChangeRequest.Status.PENDING, 0),
                'completed': change_requests.get(ChangeRequest.Status.COMPLETED, 0),
            },
            'documents': {
                'total': documents.count(),
                'ai_indexed': documents.filter(ai_indexed=True).count(),
                'by_source': _count_by(documents, 'source'),
            },
        }

    @staticmethod
    def manager_summary(user) -> Dict:
        team = get_user_model().objects.filter(Q(manager=user) | Q(hod=user)).exclude(pk=user.pk).distinct()
        pending = Approval.objects.filter(approver=user).pending()
        return {
            'team': {
                'total_members': team.count(),
                'active_members': team.filter(status=get_user_model().Status.ACTIVE).count(),
            },
            'kpis': _kpi_counts(KpiDefinition.objects.filter(owner__in=team)),
            'pending_approvals': {
                'count': pending.count(),
                'overdue': pending.overdue().count(),
                'items': list(pending.select_related('approver').order_by('-created_at')[:RECENT_ITEMS]),
            },
        }

    @staticmethod
    def staff_summary(user) -> Dict:
        actuals = _count_by(KpiActual.objects.filter(owner=user), 'status')
        unread = NotificationService.for_user(user).filter(status=Notification.Status.UNREAD)
        return {
            'kpis': _kpi_counts(KpiDefinition.objects.filter(owner=user)),
            'actuals': {
                'total': sum(actuals.values()),
                'draft': actuals.get(WorkflowStatus.DRAFT, 0),
                'submitted': sum(actuals.get(state, 0) for state in PENDING_STATES),
                'approved': actuals.get(WorkflowStatus.APPROVED, 0),
                'rejected': actuals.get(WorkflowStatus.REJECTED, 0),
            },
            'notifications': {
                'unread': unread.count(),
                'items': list(unread.order_by('-created_at')[:RECENT_ITEMS]),
            },
        }
