"""Reporting actual results against approved KPIs"""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import BusinessRuleException, PermissionDeniedException
from apps.core.upload_validators import validate_upload
from apps.performance.models import Evidence, KpiActual, KpiDefinition
from apps.workflows.services import ActualSubject, ApprovalEngine, KpiSubject
from apps.workflows.states import WorkflowStatus

logger = logging.getLogger(__name__)

REPORTABLE_KPI_STATUSES = (WorkflowStatus.APPROVED, WorkflowStatus.LOCKED_GOALS)
REOPENABLE_ACTUAL_STATUSES = (WorkflowStatus.DRAFT, WorkflowStatus.REJECTED)
SCORE_FIELDS = ['percentage', 'score', 'band', 'score_explanation']


class ActualService:

    @classmethod
    @transaction.atomic
    def record(cls, *, owner, kpi: KpiDefinition, period: str, actual_value, self_comment: str = '',
               submit: bool = True):
        """
        Create or update the actual for ``(kpi, period)`` and score it.

        Returns ``(actual, created)``.
        """
        kpi = KpiDefinition.objects.select_for_update().get(pk=kpi.pk)
        if kpi.owner_id != owner.pk:
            raise PermissionDeniedException('You can only report actuals for your own KPIs')
        if kpi.status not in REPORTABLE_KPI_STATUSES:
            raise BusinessRuleException('KPI must be approved before reporting actuals')

        existing = list(
            KpiActual.objects.select_for_update().filter(kpi=kpi, period=period).order_by('-created_at')
        )
        if any(item.status not in REOPENABLE_ACTUAL_STATUSES for item in existing):
            raise BusinessRuleException('Actual already submitted for this period')

        created = not existing
        actual = existing[0] if existing else KpiActual(kpi=kpi, owner=owner, period=period, created_by=owner)
        actual.actual_value = actual_value
        actual.self_comment = self_comment or ''
        actual.updated_by = owner
        actual.apply_score()
        actual.full_clean()
        actual.save()

        if submit:
            cls.submit(actual, actor=owner)
            actual.refresh_from_db()
        return actual, created

    @classmethod
    @transaction.atomic
    def submit(cls, actual: KpiActual, *, actor):
        if actual.owner_id != actor.pk:
            raise PermissionDeniedException('You can only submit your own actuals')

        kpi = KpiDefinition.objects.select_for_update().get(pk=actual.kpi_id)
        if kpi.status not in REPORTABLE_KPI_STATUSES:
            raise BusinessRuleException('KPI must be approved before reporting actuals')

        actual.kpi = kpi
        actual.apply_score()
        actual.save(update_fields=[*SCORE_FIELDS, 'updated_at'])
        approval = ApprovalEngine.submit(ActualSubject(actual), actor=actor)

        if kpi.status == WorkflowStatus.APPROVED:
            ApprovalEngine.lock_goals(KpiSubject(kpi))
        return approval

    @staticmethod
    def attach_evidence(actual: KpiActual, *, upload, actor) -> Evidence:
        if actual.owner_id != actor.pk:
            raise PermissionDeniedException('You can only attach evidence to your own actuals')
        if actual.status == WorkflowStatus.APPROVED:
            raise BusinessRuleException('Evidence cannot be added to an approved actual')

        validate_upload(upload)
        evidence = Evidence.objects.create(
            actual=actual,
            file=upload,
            file_name=upload.name,
            mime_type=getattr(upload, 'content_type', '') or '',
            size=upload.size or 0,
            uploaded_by=actor,
        )
        logger.info("Evidence %s (%s bytes) attached to actual %s", evidence.id, evidence.size, actual.id)
        return evidence

    @staticmethod
    def verify(actual: KpiActual) -> dict:
        """Run the evidence plausibility check and store the verdict on the actual."""
        from apps.ai_services.services import SmartValidator

        verdict = SmartValidator().validate_evidence(actual)
        actual.ai_verification_status = (
            KpiActual.AiVerification.VERIFIED if verdict['passed'] else KpiActual.AiVerification.FLAGGED
        )
        actual.ai_discrepancies = verdict['discrepancies']
        actual.ai_checked_at = timezone.now()
        actual.save(update_fields=['ai_verification_status', 'ai_discrepancies', 'ai_checked_at', 'updated_at'])
        logger.info("Actual %s verification: %s", actual.id, actual.ai_verification_status)
        return verdict
