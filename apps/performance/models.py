"""
Performance Models - Cycles, KPI goals, actual results and evidence
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models

from apps.core.models import BaseEntity, TimeStampedModel
from apps.workflows.states import (
    ACTUAL_STATUS_CHOICES,
    EDITABLE_STATES,
    KPI_STATUS_CHOICES,
    WorkflowStatus,
)

from .services import scoring

PERCENTAGE_STEP = Decimal('0.1')

period_validator = RegexValidator(
    regex=r'^\d{4}-(0[1-9]|1[0-2])$',
    message='Period must be in YYYY-MM format',
)


class Cycle(BaseEntity):
    """Goal-setting / review cycle"""

    class CycleType(models.TextChoices):
        ANNUAL = 'ANNUAL', 'Annual'
        SEMI_ANNUAL = 'SEMI_ANNUAL', 'Semi-annual'
        QUARTERLY = 'QUARTERLY', 'Quarterly'
        MONTHLY = 'MONTHLY', 'Monthly'

    class Status(models.TextChoices):
        DRAFT = 'DRAFT', 'Draft'
        OPEN = 'OPEN', 'Open'
        ACTIVE = 'ACTIVE', 'Active'
        CLOSED = 'CLOSED', 'Closed'
        INACTIVE = 'INACTIVE', 'Inactive'

    name = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=CycleType.choices, default=CycleType.ANNUAL)
    description = models.TextField(blank=True)

    period_start = models.DateField()
    period_end = models.DateField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    # Empty list means every active user takes part
    target_users = models.JSONField(default=list, blank=True)
    settings = models.JSONField(default=dict, blank=True)

    opened_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-period_start']

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.period_start and self.period_end and self.period_end <= self.period_start:
            raise ValidationError({'period_end': 'End date must be after start date'})


class KpiDefinition(BaseEntity):
    """
    A KPI goal owned by one user for one cycle. Never deleted; status moves
    through the approval state machine.
    """

    class KpiType(models.TextChoices):
        QUANT_HIGHER_BETTER = scoring.HIGHER_BETTER, 'Higher is better'
        QUANT_LOWER_BETTER = scoring.LOWER_BETTER, 'Lower is better'
        MILESTONE = scoring.MILESTONE, 'Milestone scale'
        BOOLEAN = scoring.BOOLEAN, 'Done / not done'
        BEHAVIOR = scoring.BEHAVIOR, 'Behaviour'

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='kpis')
    cycle = models.ForeignKey(Cycle, on_delete=models.PROTECT, related_name='kpis')

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=30, choices=KpiType.choices, default=KpiType.QUANT_HIGHER_BETTER)
    unit = models.CharField(max_length=50)
    target = models.DecimalField(max_digits=14, decimal_places=4)
    weight = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    data_source = models.CharField(max_length=255, blank=True)
    measurement_method = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    ogsm_alignment = models.CharField(max_length=255, blank=True)
    # Milestone scale: [{"threshold": 80, "score_level": 10}, ...]
    scoring_scale = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=KPI_STATUS_CHOICES,
        default=WorkflowStatus.DRAFT,
        db_index=True,
    )
    rejection_reason = models.TextField(blank=True)
    change_request_reason = models.TextField(blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_kpis',
    )

    class Meta:
        ordering = ['cycle', 'owner', 'created_at']
        indexes = [
            models.Index(fields=['owner', 'cycle', 'status']),
        ]

    def __str__(self):
        return self.title

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATES

    def clean(self):
        super().clean()
        if self.type == self.KpiType.MILESTONE:
            problems = scoring.validate_milestone_scale(self.scoring_scale)
            if problems:
                raise ValidationError({'scoring_scale': problems})

    def score(self, actual_value) -> scoring.ScoreResult:
        return scoring.calculate_score(
            self.type,
            float(actual_value),
            float(self.target),
            scale=self.scoring_scale,
            cap=getattr(settings, 'KPI_SCORE_CAP', scoring.DEFAULT_CAP),
        )


class KpiActual(BaseEntity):
    """Reported result for one KPI in one month (``YYYY-MM``)"""

    class AiVerification(models.TextChoices):
        NOT_CHECKED = 'NOT_CHECKED', 'Not checked'
        VERIFIED = 'VERIFIED', 'Verified'
        FLAGGED = 'FLAGGED', 'Flagged'

    kpi = models.ForeignKey(KpiDefinition, on_delete=models.PROTECT, related_name='actuals')
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='kpi_actuals')
    period = models.CharField(max_length=7, validators=[period_validator], db_index=True)

    actual_value = models.DecimalField(max_digits=14, decimal_places=4)
    percentage = models.DecimalField(max_digits=6, decimal_places=1, default=0)
    score = models.PositiveSmallIntegerField(default=0)
    band = models.CharField(max_length=50, blank=True)
    score_explanation = models.CharField(max_length=255, blank=True)
    self_comment = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=ACTUAL_STATUS_CHOICES,
        default=WorkflowStatus.DRAFT,
        db_index=True,
    )
    rejection_reason = models.TextField(blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_actuals',
    )

    ai_verification_status = models.CharField(
        max_length=20,
        choices=AiVerification.choices,
        default=AiVerification.NOT_CHECKED,
    )
    ai_discrepancies = models.JSONField(default=list, blank=True)
    ai_checked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-period', '-created_at']
        indexes = [
            models.Index(fields=['kpi', 'period', 'status']),
        ]

    def __str__(self):
        return f"{self.kpi.title} {self.period}"

    def apply_score(self) -> scoring.ScoreResult:
        result = self.kpi.score(self.actual_value)
        self.percentage = Decimal(str(result.percentage)).quantize(PERCENTAGE_STEP, rounding=ROUND_HALF_UP)
        self.score = result.score
        self.band = result.band
        self.score_explanation = result.explanation[:255]
        return result


class Evidence(TimeStampedModel):
    """File backing up a reported actual"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actual = models.ForeignKey(KpiActual, on_delete=models.CASCADE, related_name='evidence')
    file = models.FileField(upload_to='evidence/%Y/%m/')
    file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='uploaded_evidence',
    )

    class Meta:
        ordering = ['created_at']
        verbose_name_plural = 'Evidence'

    def __str__(self):
        return self.file_name
