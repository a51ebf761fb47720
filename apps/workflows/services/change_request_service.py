"""Change requests issued by admins and resolved by KPI owners"""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import BusinessRuleException, PermissionDeniedException
from apps.core.permissions import is_admin
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.workflows.models import ChangeRequest
from apps.workflows.states import KPI, Event, WorkflowStatus, transition
from .entity_resolver import EntityResolver

logger = logging.getLogger(__name__)

# A change on an already approved goal can be confirmed by the owner alone;
# anything earlier has to go back through approval.
SELF_RESOLVABLE_STATUSES = (WorkflowStatus.APPROVED, WorkflowStatus.LOCKED_GOALS)


class ChangeRequestService:

    @staticmethod
    def for_user(user):
        queryset = ChangeRequest.objects.select_related('kpi', 'kpi__owner', 'requested_by', 'resolved_by')
        if is_admin(user):
            return queryset
        return queryset.filter(kpi__owner=user)

    @staticmethod
    def open(*, kpi, requested_by, reason: str, previous_status: str,
             change_type: str = ChangeRequest.ChangeType.OTHER) -> ChangeRequest:
        change_request = ChangeRequest.objects.create(
            kpi=kpi,
            requested_by=requested_by,
            change_type=change_type,
            reason=reason,
            previous_status=previous_status,
            created_by=requested_by,
        )
        logger.info("Change request %s opened on KPI %s by %s", change_request.id, kpi.pk, requested_by.email)
        return change_request

    @classmethod
    @transaction.atomic
    def resolve(cls, change_request: ChangeRequest, *, actor, comment: str = '') -> ChangeRequest:
        """Owner confirms the requested revision; the KPI returns to APPROVED."""
        change_request = ChangeRequest.objects.select_for_update().get(pk=change_request.pk)
        subject = EntityResolver.resolve(KPI, change_request.kpi_id, for_update=True)

        if subject.owner.pk != actor.pk:
            raise PermissionDeniedException('Only the KPI owner can resolve this change request')
        if not change_request.is_pending:
            raise BusinessRuleException('This change request has already been resolved')
        if change_request.previous_status not in SELF_RESOLVABLE_STATUSES:
            raise BusinessRuleException(
                'Resubmit the KPI for approval to complete this change request',
                details={'previous_status': change_request.previous_status},
            )

        subject.set_status(transition(KPI, subject.status, Event.RESOLVE_CHANGE))
        cls._complete(change_request, actor, comment or 'Changes have been made as requested')
        return change_request

    @classmethod
    def complete_pending(cls, kpi, *, actor, comment: str) -> int:
        """Close every pending request on ``kpi``; callers hold the KPI row lock."""
        pending = list(ChangeRequest.objects.select_for_update().filter(kpi=kpi, status=ChangeRequest.Status.PENDING))
        for change_request in pending:
            cls._complete(change_request, actor, comment)
        return len(pending)

    @staticmethod
    def _complete(change_request: ChangeRequest, actor, comment: str) -> None:
        change_request.status = ChangeRequest.Status.COMPLETED
        change_request.resolved_at = timezone.now()
        change_request.resolved_by = actor
        change_request.resolution_comment = comment
        change_request.updated_by = actor
        change_request.save(update_fields=[
            'status', 'resolved_at', 'resolved_by', 'resolution_comment', 'updated_by', 'updated_at',
        ])
        logger.info("Change request %s completed by %s", change_request.id, actor.email)

        kpi = change_request.kpi
        NotificationService.notify(
            recipient=change_request.requested_by,
            notification_type=Notification.Type.CHANGE_REQUEST_COMPLETED,
            title='Change request completed',
            message=f"{actor.name} has completed the requested changes for KPI \"{kpi.title}\". {comment}".strip(),
            action_url=f"/kpis/{kpi.pk}",
            entity_type=KPI,
            entity_id=kpi.pk,
        )
