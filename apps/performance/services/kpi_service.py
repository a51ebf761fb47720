"""KPI goal lifecycle: creation, editing and submission for approval"""
from __future__ import annotations

import logging
from typing import List

from django.db import transaction

from apps.core.exceptions import (
    BusinessRuleException,
    PermissionDeniedException,
    ValidationException,
)
from apps.performance.models import Cycle, KpiDefinition
from apps.workflows.services import ApprovalEngine, KpiSubject
from apps.workflows.states import EDITABLE_STATES, WorkflowStatus
from .validation import KpiValidator, ValidationResult

logger = logging.getLogger(__name__)

GOAL_SETTING_STATUSES = (Cycle.Status.OPEN, Cycle.Status.ACTIVE)


class KpiService:

    @staticmethod
    def _raise_invalid(message: str, result: ValidationResult):
        raise ValidationException(message, details=result.as_dict())

    @staticmethod
    def active_set(owner, cycle, including=None) -> List[KpiDefinition]:
        """Owner's KPIs in ``cycle`` that count towards the weight total."""
        kpis = list(
            KpiDefinition.objects.filter(owner=owner, cycle=cycle)
            .exclude(status=WorkflowStatus.REJECTED)
            .order_by('created_at')
        )
        if including is not None and all(kpi.pk != including.pk for kpi in kpis):
            kpis.append(including)
        return kpis

    @classmethod
    def create(cls, *, owner, cycle, **fields) -> KpiDefinition:
        if cycle.status not in GOAL_SETTING_STATUSES:
            raise BusinessRuleException('Cycle is not open for goal setting')

        current = cls.active_set(owner, cycle)
        result = KpiValidator().validate_single(fields, current)
        if not result.valid:
            cls._raise_invalid(result.errors[0], result)

        kpi = KpiDefinition(owner=owner, cycle=cycle, created_by=owner, **fields)
        kpi.full_clean()
        kpi.save()
        logger.info("KPI %s created by %s in cycle %s", kpi.id, owner.email, cycle.id)
        return kpi

    @classmethod
    def update(cls, kpi: KpiDefinition, *, actor, **fields) -> KpiDefinition:
        if kpi.owner_id != actor.pk:
            raise PermissionDeniedException('You can only edit your own KPIs')
        if kpi.status not in EDITABLE_STATES:
            raise BusinessRuleException(f"KPI cannot be edited in status {kpi.status}")

        for name, value in fields.items():
            setattr(kpi, name, value)

        others = [item for item in cls.active_set(kpi.owner, kpi.cycle) if item.pk != kpi.pk]
        result = KpiValidator().validate_single(kpi, others)
        if not result.valid:
            cls._raise_invalid(result.errors[0], result)

        kpi.updated_by = actor
        kpi.full_clean()
        kpi.save()
        return kpi

    @classmethod
    @transaction.atomic
    def submit(cls, kpi: KpiDefinition, *, actor):
        if kpi.owner_id != actor.pk:
            raise PermissionDeniedException('You can only submit your own KPIs')

        result = KpiValidator().validate_set(cls.active_set(kpi.owner, kpi.cycle, including=kpi))
        if not result.valid:
            cls._raise_invalid('KPI set validation failed', result)

        approval = ApprovalEngine.submit(KpiSubject(kpi), actor=actor)
        kpi.refresh_from_db()
        return kpi, approval, result

    @classmethod
    @transaction.atomic
    def submit_set(cls, *, owner, cycle):
        """Validate the owner's whole set and submit every editable KPI in it."""
        kpis = list(KpiDefinition.objects.filter(owner=owner, cycle=cycle).order_by('created_at'))
        editable = [kpi for kpi in kpis if kpi.status in EDITABLE_STATES]
        if not editable:
            raise BusinessRuleException('No editable KPIs to submit')

        result = KpiValidator().validate_set(kpis)
        if not result.valid:
            cls._raise_invalid('KPI set validation failed', result)

        approvals = [ApprovalEngine.submit(KpiSubject(kpi), actor=owner) for kpi in editable]
        logger.info("%s KPIs submitted as a set by %s for cycle %s", len(editable), owner.email, cycle.id)
        for kpi in editable:
            kpi.refresh_from_db()
        return editable, approvals, result
