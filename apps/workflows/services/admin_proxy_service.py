"""Admin actions taken on behalf of staff or approvers, with an audit trail"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.db.models import Count

from apps.core.exceptions import ResourceNotFoundException, ValidationException
from apps.workflows.models import Approval, ChangeRequest, ProxyAction
from apps.workflows.states import KPI
from .approval_engine import ApprovalEngine
from .change_request_service import ChangeRequestService
from .entity_resolver import EntityResolver

logger = logging.getLogger(__name__)

Action = ProxyAction.ActionType


class AdminProxyService:
    """Every action requires a reason and writes one ``ProxyAction`` row."""

    @classmethod
    @transaction.atomic
    def return_to_staff(cls, *, admin, entity_type: str, entity_id, reason: str, comment: str = ''):
        cls._require_reason(reason)
        subject = EntityResolver.resolve(entity_type, entity_id)
        previous_status = subject.status
        subject = ApprovalEngine.return_to_staff(subject, actor=admin, reason=reason)
        cls._record(
            Action.RETURN_TO_STAFF, admin, subject.entity_type, subject.entity_id, reason, comment,
            previous_status=previous_status, new_status=subject.status,
        )
        return subject

    @classmethod
    @transaction.atomic
    def approve_as_manager(cls, *, admin, entity_type: str, entity_id, reason: str,
                           level: Optional[int] = None, comment: str = ''):
        cls._require_reason(reason)
        approval = cls._pending_approval(entity_type, entity_id, level)
        addressee = approval.approver_id
        ApprovalEngine.approve(approval, actor=admin, comment=comment or f"Approved by admin: {reason}")
        cls._record(
            Action.APPROVE_AS_MANAGER, admin, entity_type, entity_id, reason, comment,
            approval=str(approval.id), level=approval.level, on_behalf_of=str(addressee),
        )
        return EntityResolver.resolve(entity_type, entity_id)

    @classmethod
    @transaction.atomic
    def reject_as_manager(cls, *, admin, entity_type: str, entity_id, reason: str, comment: str,
                          level: Optional[int] = None):
        cls._require_reason(reason)
        if not (comment or '').strip():
            raise ValidationException('Comment is required when rejecting', field='comment')
        approval = cls._pending_approval(entity_type, entity_id, level)
        addressee = approval.approver_id
        ApprovalEngine.reject(approval, actor=admin, comment=comment)
        cls._record(
            Action.REJECT_AS_MANAGER, admin, entity_type, entity_id, reason, comment,
            approval=str(approval.id), level=approval.level, on_behalf_of=str(addressee),
        )
        return EntityResolver.resolve(entity_type, entity_id)

    @classmethod
    @transaction.atomic
    def reassign_approver(cls, *, admin, approval: Approval, new_approver, reason: str, comment: str = ''):
        cls._require_reason(reason)
        previous = approval.approver_id
        approval = ApprovalEngine.reassign(approval, new_approver=new_approver, actor=admin)
        cls._record(
            Action.REASSIGN_APPROVER, admin, approval.entity_type, approval.entity_id, reason, comment,
            approval=str(approval.id), level=approval.level,
            previous_approver=str(previous), new_approver=str(new_approver.pk),
        )
        return approval

    @classmethod
    @transaction.atomic
    def issue_change_request(cls, *, admin, kpi_id, reason: str, comment: str = '',
                             change_type: str = ChangeRequest.ChangeType.OTHER) -> ChangeRequest:
        cls._require_reason(reason)
        subject = EntityResolver.resolve(KPI, kpi_id)
        previous_status = subject.status
        subject = ApprovalEngine.request_change(subject, actor=admin, reason=reason)
        change_request = ChangeRequestService.open(
            kpi=subject.kpi,
            requested_by=admin,
            reason=reason,
            previous_status=previous_status,
            change_type=change_type,
        )
        cls._record(
            Action.CHANGE_REQUEST, admin, KPI, kpi_id, reason, comment,
            previous_status=previous_status, new_status=subject.status,
            change_request=str(change_request.id), change_type=str(change_type),
        )
        return change_request

    @staticmethod
    def history(*, action_type: Optional[str] = None, entity_type: Optional[str] = None, entity_id=None):
        queryset = ProxyAction.objects.select_related('performed_by')
        if action_type:
            queryset = queryset.filter(action_type=action_type)
        if entity_type:
            queryset = queryset.filter(entity_type=entity_type)
        if entity_id:
            queryset = queryset.filter(entity_id=entity_id)
        return queryset

    @staticmethod
    def statistics() -> dict:
        counts = dict(
            ProxyAction.objects.values_list('action_type').annotate(total=Count('id')).order_by()
        )
        by_type = {choice: counts.get(choice, 0) for choice in Action.values}
        return {'total': sum(by_type.values()), 'by_action_type': by_type}

    # -------------------------------------------------------------- internals
    @staticmethod
    def _require_reason(reason: str) -> None:
        if not (reason or '').strip():
            raise ValidationException('Reason is required for admin proxy actions', field='reason')

    @staticmethod
    def _pending_approval(entity_type: str, entity_id, level: Optional[int]) -> Approval:
        EntityResolver.model_for(entity_type)
        queryset = Approval.objects.for_entity(entity_type, entity_id).pending().order_by('level')
        if level is not None:
            queryset = queryset.filter(level=level)
        approval = queryset.first()
        if approval is None:
            if level is not None:
                raise ResourceNotFoundException(f"Pending approval at level {level}")
            raise ResourceNotFoundException('Pending approval')
        return approval

    @staticmethod
    def _record(action_type, admin, entity_type, entity_id, reason, comment, **metadata) -> ProxyAction:
        action = ProxyAction.objects.create(
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            performed_by=admin,
            reason=reason,
            comment=comment or '',
            metadata=metadata,
            created_by=admin,
        )
        logger.info(
            "Admin proxy %s on %s %s by %s: %s",
            action_type, entity_type, entity_id, admin.email, reason,
        )
        return action
