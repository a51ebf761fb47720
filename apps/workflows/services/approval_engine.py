"""Two-level approval cascade for KPI definitions and actuals"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from apps.core.exceptions import (
    APIException,
    BusinessRuleException,
    PermissionDeniedException,
    ValidationException,
)
from apps.core.permissions import is_admin
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.workflows.models import Approval
from apps.workflows.states import Event, WorkflowStatus, transition
from .approver_resolver import ApproverResolver
from .change_request_service import ChangeRequestService
from .entity_resolver import ActualSubject, EntityResolver, KpiSubject, Subject

logger = logging.getLogger(__name__)


class ApprovalAlreadyProcessed(APIException):
    def __init__(self, approval: Approval):
        super().__init__(
            'Approval already processed',
            code='approval_processed',
            status_code=status.HTTP_409_CONFLICT,
            details={'approval': str(approval.id), 'status': approval.status},
        )


class ApprovalEngine:
    """
    Every method runs in one transaction: the approval row and the subject
    row are locked, updated and followed up together or not at all.
    """

    # ----------------------------------------------------------------- submit
    @classmethod
    @transaction.atomic
    def submit(cls, subject: Subject, *, actor) -> Approval:
        """Move a draft (or rejected / change-requested) subject to level-1 review."""
        subject = EntityResolver.resolve(subject.entity_type, subject.entity_id, for_update=True)
        previous_status = subject.status
        new_status = transition(subject.entity_type, subject.status, Event.SUBMIT)

        approver = ApproverResolver.level_one(subject.owner)
        if approver is None:
            raise BusinessRuleException('No approver available')

        cls._cancel_pending(subject)
        approval = Approval.objects.create(
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            level=1,
            approver=approver,
            submitted_by=actor,
            created_by=actor,
        )
        subject.set_status(new_status, submitted_at=timezone.now(), rejection_reason='')
        if previous_status == WorkflowStatus.CHANGE_REQUESTED:
            ChangeRequestService.complete_pending(subject.instance, actor=actor, comment='Resubmitted for approval')
        logger.info(
            "%s %s submitted by %s; level-1 approval %s to %s",
            subject.entity_type, subject.entity_id, actor.email, approval.id, approver.email,
        )

        NotificationService.notify(
            recipient=approver,
            notification_type=subject.approval_required_type,
            title=f"{subject.label} awaiting your approval",
            message=f"{subject.owner.name} submitted \"{subject.title}\" for approval.",
            priority=Notification.Priority.HIGH,
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            metadata={'approval': str(approval.id), 'level': 1},
        )
        return approval

    # ---------------------------------------------------------------- approve
    @classmethod
    @transaction.atomic
    def approve(cls, approval: Approval, *, actor, comment: str = '') -> Approval:
        approval = cls._lock_pending(approval, actor)
        subject = EntityResolver.resolve(approval.entity_type, approval.entity_id, for_update=True)

        cls._decide(approval, actor, Approval.Status.APPROVED, comment)

        next_approver = None
        if approval.level == 1:
            next_approver = ApproverResolver.level_two(subject.owner)
            if next_approver is not None and next_approver.pk == approval.approver_id:
                logger.info(
                    "Level-2 approver for %s %s is the level-1 approver; finalizing",
                    subject.entity_type, subject.entity_id,
                )
                next_approver = None

        if next_approver is None:
            cls._finalize(subject, approval, actor)
        else:
            cls._escalate(subject, approval, next_approver, actor)
        return approval

    # ----------------------------------------------------------------- reject
    @classmethod
    @transaction.atomic
    def reject(cls, approval: Approval, *, actor, comment: str) -> Approval:
        if not (comment or '').strip():
            raise ValidationException('Comment is required when rejecting', field='comment')

        approval = cls._lock_pending(approval, actor)
        subject = EntityResolver.resolve(approval.entity_type, approval.entity_id, for_update=True)
        new_status = transition(subject.entity_type, subject.status, Event.REJECT)

        cls._decide(approval, actor, Approval.Status.REJECTED, comment)
        cls._cancel_pending(subject, exclude=approval)
        subject.set_status(new_status, rejection_reason=comment)
        logger.info(
            "%s %s rejected at level %s by %s",
            subject.entity_type, subject.entity_id, approval.level, actor.email,
        )

        NotificationService.notify(
            recipient=subject.owner,
            notification_type=subject.rejected_type,
            title=f"{subject.label} rejected",
            message=f"\"{subject.title}\" was rejected: {comment}",
            priority=Notification.Priority.HIGH,
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            metadata={'approval': str(approval.id), 'level': approval.level},
        )
        return approval

    # ------------------------------------------------------ admin-driven moves
    @classmethod
    @transaction.atomic
    def return_to_staff(cls, subject: Subject, *, actor, reason: str) -> Subject:
        subject = EntityResolver.resolve(subject.entity_type, subject.entity_id, for_update=True)
        new_status = transition(subject.entity_type, subject.status, Event.RETURN_TO_STAFF)
        cancelled = cls._cancel_pending(subject)
        subject.set_status(new_status)
        logger.info(
            "%s %s returned to staff by %s (%s pending approvals cancelled)",
            subject.entity_type, subject.entity_id, actor.email, cancelled,
        )
        NotificationService.notify(
            recipient=subject.owner,
            notification_type=Notification.Type.CHANGE_REQUEST,
            title=f"{subject.label} returned for editing",
            message=f"\"{subject.title}\" was returned to you: {reason}",
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
        )
        return subject

    @classmethod
    @transaction.atomic
    def request_change(cls, subject: KpiSubject, *, actor, reason: str) -> KpiSubject:
        subject = EntityResolver.resolve(subject.entity_type, subject.entity_id, for_update=True)
        new_status = transition(subject.entity_type, subject.status, Event.REQUEST_CHANGE)
        cls._cancel_pending(subject)
        subject.set_status(new_status, change_request_reason=reason)
        logger.info("Change requested on %s %s by %s", subject.entity_type, subject.entity_id, actor.email)
        NotificationService.notify(
            recipient=subject.owner,
            notification_type=Notification.Type.CHANGE_REQUEST,
            title='Change requested on your KPI',
            message=f"A change was requested on \"{subject.title}\": {reason}",
            priority=Notification.Priority.HIGH,
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
        )
        return subject

    @classmethod
    def lock_goals(cls, subject: KpiSubject) -> KpiSubject:
        """Freeze an approved KPI; callers hold the row lock."""
        subject.set_status(transition(subject.entity_type, subject.status, Event.LOCK_GOALS))
        logger.info("Goals locked for KPI %s", subject.entity_id)
        return subject

    @classmethod
    @transaction.atomic
    def reassign(cls, approval: Approval, *, new_approver, actor) -> Approval:
        approval = Approval.objects.select_for_update().get(pk=approval.pk)
        if approval.status != Approval.Status.PENDING:
            raise ApprovalAlreadyProcessed(approval)
        if not new_approver.is_active:
            raise BusinessRuleException('New approver must be an active user')
        previous = approval.approver_id
        approval.approver = new_approver
        approval.updated_by = actor
        approval.save(update_fields=['approver', 'updated_by', 'updated_at'])
        logger.info("Approval %s reassigned from %s to %s by %s", approval.id, previous, new_approver.pk, actor.email)

        subject = approval.subject
        NotificationService.notify(
            recipient=new_approver,
            notification_type=subject.approval_required_type,
            title=f"{subject.label} awaiting your approval",
            message=f"\"{subject.title}\" was reassigned to you.",
            priority=Notification.Priority.HIGH,
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            metadata={'approval': str(approval.id), 'level': approval.level},
        )
        return approval

    # -------------------------------------------------------------- internals
    @staticmethod
    def _lock_pending(approval: Approval, actor) -> Approval:
        approval = Approval.objects.select_for_update().get(pk=approval.pk)
        if approval.status != Approval.Status.PENDING:
            raise ApprovalAlreadyProcessed(approval)
        if approval.approver_id != actor.pk and not is_admin(actor):
            raise PermissionDeniedException('You are not the assigned approver')
        return approval

    @staticmethod
    def _decide(approval: Approval, actor, decision: str, comment: str) -> None:
        approval.status = decision
        approval.comment = comment or ''
        approval.decided_at = timezone.now()
        approval.decided_by = actor
        approval.is_proxy = approval.approver_id != actor.pk
        approval.updated_by = actor
        approval.save(update_fields=[
            'status', 'comment', 'decided_at', 'decided_by', 'is_proxy', 'updated_by', 'updated_at',
        ])

    @classmethod
    def _escalate(cls, subject: Subject, approval: Approval, next_approver, actor) -> Approval:
        new_status = transition(subject.entity_type, subject.status, Event.ESCALATE)
        escalated = Approval.objects.create(
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            level=approval.level + 1,
            approver=next_approver,
            submitted_by=approval.submitted_by,
            created_by=actor,
        )
        subject.set_status(new_status)
        logger.info(
            "%s %s escalated to level %s approver %s",
            subject.entity_type, subject.entity_id, escalated.level, next_approver.email,
        )
        NotificationService.notify(
            recipient=next_approver,
            notification_type=subject.approval_required_type,
            title=f"{subject.label} awaiting your approval",
            message=f"\"{subject.title}\" by {subject.owner.name} passed level {approval.level} review.",
            priority=Notification.Priority.HIGH,
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            metadata={'approval': str(escalated.id), 'level': escalated.level},
        )
        return escalated

    @classmethod
    def _finalize(cls, subject: Subject, approval: Approval, actor) -> None:
        new_status = transition(subject.entity_type, subject.status, Event.FINALIZE)
        fields = {'approved_at': timezone.now(), 'approved_by': actor}
        if isinstance(subject, ActualSubject):
            subject.actual.apply_score()
            fields.update(
                percentage=subject.actual.percentage,
                score=subject.actual.score,
                band=subject.actual.band,
                score_explanation=subject.actual.score_explanation,
            )
        subject.set_status(new_status, **fields)
        logger.info("%s %s approved (final level %s)", subject.entity_type, subject.entity_id, approval.level)

        NotificationService.notify(
            recipient=subject.owner,
            notification_type=subject.approved_type,
            title=f"{subject.label} approved",
            message=f"\"{subject.title}\" has been approved.",
            action_url=subject.action_url,
            entity_type=subject.entity_type,
            entity_id=subject.entity_id,
            metadata={'approval': str(approval.id), 'level': approval.level},
        )

    @staticmethod
    def _cancel_pending(subject: Subject, exclude: Optional[Approval] = None) -> int:
        queryset = Approval.objects.for_entity(subject.entity_type, subject.entity_id).pending()
        if exclude is not None:
            queryset = queryset.exclude(pk=exclude.pk)
        return queryset.update(status=Approval.Status.CANCELLED, decided_at=timezone.now(), updated_at=timezone.now())
