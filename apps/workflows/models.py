"""Workflow Models - Multi-level approvals, admin proxy log and change requests"""
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import BaseEntity, MetadataModel
from .states import ACTUAL, KPI

ENTITY_TYPE_CHOICES = [
    (KPI, 'KPI definition'),
    (ACTUAL, 'KPI actual'),
]


class ApprovalQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=Approval.Status.PENDING)

    def for_entity(self, entity_type, entity_id):
        return self.filter(entity_type=entity_type, entity_id=entity_id)

    def overdue(self, now=None):
        return self.pending().filter(created_at__lte=overdue_cutoff(now))


def overdue_days():
    return getattr(settings, 'APPROVAL_OVERDUE_DAYS', 3)


def overdue_cutoff(now=None):
    """Pending approvals created at or before this instant are more than ``overdue_days()`` whole days old."""
    return (now or timezone.now()) - timedelta(days=overdue_days() + 1)


class Approval(BaseEntity):
    """
    A decision request addressed to one approver at one level.

    ``entity_type``/``entity_id`` point at a KPI definition or a KPI actual;
    use ``subject`` for the typed view.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        APPROVED = 'APPROVED', 'Approved'
        REJECTED = 'REJECTED', 'Rejected'
        CANCELLED = 'CANCELLED', 'Cancelled'

    entity_type = models.CharField(max_length=10, choices=ENTITY_TYPE_CHOICES, db_index=True)
    entity_id = models.UUIDField(db_index=True)
    level = models.PositiveSmallIntegerField(default=1)

    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='approvals',
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submitted_approvals',
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    comment = models.TextField(blank=True)

    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='decided_approvals',
    )
    is_proxy = models.BooleanField(default=False)

    objects = ApprovalQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['approver', 'status']),
            models.Index(fields=['entity_type', 'entity_id', 'status']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['entity_type', 'entity_id', 'level'],
                condition=models.Q(status='PENDING'),
                name='unique_pending_approval_per_level',
            ),
        ]

    def __str__(self):
        return f"{self.entity_type}:{self.entity_id} L{self.level} - {self.status}"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING

    @property
    def days_pending(self):
        if not self.created_at:
            return 0
        end = self.decided_at or timezone.now()
        return (end - self.created_at).days

    @property
    def is_overdue(self):
        return self.is_pending and self.days_pending > overdue_days()

    @property
    def subject(self):
        from .services.entity_resolver import EntityResolver
        return EntityResolver.resolve(self.entity_type, self.entity_id)


class ProxyAction(BaseEntity, MetadataModel):
    """Audit row for an admin acting on behalf of staff or an approver"""

    class ActionType(models.TextChoices):
        RETURN_TO_STAFF = 'RETURN_TO_STAFF', 'Return to staff'
        APPROVE_AS_MANAGER = 'APPROVE_AS_MANAGER', 'Approve as manager'
        REJECT_AS_MANAGER = 'REJECT_AS_MANAGER', 'Reject as manager'
        REASSIGN_APPROVER = 'REASSIGN_APPROVER', 'Reassign approver'
        CHANGE_REQUEST = 'CHANGE_REQUEST', 'Change request'

    action_type = models.CharField(max_length=30, choices=ActionType.choices, db_index=True)
    entity_type = models.CharField(max_length=10, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.UUIDField(db_index=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='proxy_actions',
    )
    reason = models.TextField()
    comment = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action_type} {self.entity_type}:{self.entity_id}"


class ChangeRequest(BaseEntity):
    """
    Admin request for the owner to revise a KPI.

    Stays PENDING until the owner confirms the revision (``resolve``) or
    resubmits the KPI for approval.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        COMPLETED = 'COMPLETED', 'Completed'

    class ChangeType(models.TextChoices):
        TARGET = 'TARGET', 'Target'
        WEIGHT = 'WEIGHT', 'Weight'
        DEFINITION = 'DEFINITION', 'Definition'
        OTHER = 'OTHER', 'Other'

    kpi = models.ForeignKey(
        'performance.KpiDefinition',
        on_delete=models.PROTECT,
        related_name='change_requests',
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='issued_change_requests',
    )
    change_type = models.CharField(max_length=20, choices=ChangeType.choices, default=ChangeType.OTHER)
    reason = models.TextField()
    # KPI status when the request was issued
    previous_status = models.CharField(max_length=20)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)

    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='resolved_change_requests',
    )
    resolution_comment = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['kpi', 'status']),
        ]

    def __str__(self):
        return f"{self.change_type} on {self.kpi_id} - {self.status}"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING
