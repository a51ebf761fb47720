"""Cycle status changes"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import BusinessRuleException
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.performance.models import Cycle, KpiDefinition
from apps.workflows.services import ApprovalEngine, KpiSubject
from apps.workflows.states import WorkflowStatus

logger = logging.getLogger(__name__)

S = Cycle.Status

ALLOWED_MOVES = {
    S.OPEN: (S.DRAFT,),
    S.ACTIVE: (S.DRAFT, S.OPEN),
    S.CLOSED: (S.OPEN, S.ACTIVE),
}


class CycleService:

    @staticmethod
    def _move(cycle: Cycle, target: str, actor, **fields) -> Cycle:
        if cycle.status not in ALLOWED_MOVES[target]:
            raise BusinessRuleException(
                f"Cannot move cycle from {cycle.status} to {target}",
                details={'status': cycle.status, 'target': target},
            )
        cycle.status = target
        cycle.updated_by = actor
        for name, value in fields.items():
            setattr(cycle, name, value)
        cycle.save(update_fields=['status', 'updated_by', 'updated_at', *fields])
        logger.info("Cycle %s moved to %s by %s", cycle.id, target, actor.email)
        return cycle

    @classmethod
    @transaction.atomic
    def open(cls, cycle: Cycle, *, actor) -> Cycle:
        cls._move(cycle, S.OPEN, actor, opened_at=timezone.now())
        NotificationService.notify_many(
            cls.participants(cycle),
            notification_type=Notification.Type.CYCLE_OPENED,
            title=f"{cycle.name} is open",
            message=f"Goal setting for {cycle.name} is open. Please create and submit your KPIs.",
            action_url='/kpis',
            entity_type='CYCLE',
            entity_id=cycle.id,
        )
        return cycle

    @classmethod
    def activate(cls, cycle: Cycle, *, actor) -> Cycle:
        return cls._move(cycle, S.ACTIVE, actor)

    @classmethod
    def close(cls, cycle: Cycle, *, actor) -> Cycle:
        return cls._move(cycle, S.CLOSED, actor, closed_at=timezone.now())

    @staticmethod
    @transaction.atomic
    def lock_goals(cycle: Cycle, *, actor) -> int:
        kpis = KpiDefinition.objects.select_for_update().filter(cycle=cycle, status=WorkflowStatus.APPROVED)
        locked = 0
        for kpi in kpis:
            ApprovalEngine.lock_goals(KpiSubject(kpi))
            locked += 1
        logger.info("%s KPIs locked in cycle %s by %s", locked, cycle.id, actor.email)
        return locked

    @staticmethod
    def participants(cycle: Cycle):
        users = get_user_model().objects.active()
        if cycle.target_users:
            users = users.filter(pk__in=cycle.target_users)
        return users

    @staticmethod
    def current():
        return Cycle.objects.filter(status=S.ACTIVE).order_by('-period_start').first()
