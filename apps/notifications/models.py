"""Notification Models"""
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import MetadataModel, TimeStampedModel


class Notification(TimeStampedModel, MetadataModel):
    """In-app / email notification for one user"""

    class Type(models.TextChoices):
        KPI_SUBMITTED = 'KPI_SUBMITTED', 'KPI submitted'
        KPI_APPROVED = 'KPI_APPROVED', 'KPI approved'
        KPI_REJECTED = 'KPI_REJECTED', 'KPI rejected'
        APPROVAL_REQUIRED = 'APPROVAL_REQUIRED', 'Approval required'
        ACTUAL_SUBMITTED = 'ACTUAL_SUBMITTED', 'Actual submitted'
        ACTUAL_APPROVED = 'ACTUAL_APPROVED', 'Actual approved'
        ACTUAL_REJECTED = 'ACTUAL_REJECTED', 'Actual rejected'
        ACTUAL_APPROVAL_REQUIRED = 'ACTUAL_APPROVAL_REQUIRED', 'Actual approval required'
        CYCLE_OPENED = 'CYCLE_OPENED', 'Cycle opened'
        CHANGE_REQUEST = 'CHANGE_REQUEST', 'Change request'
        CHANGE_REQUEST_COMPLETED = 'CHANGE_REQUEST_COMPLETED', 'Change request completed'
        REMINDER = 'REMINDER', 'Reminder'
        SYSTEM = 'SYSTEM', 'System'

    class Priority(models.TextChoices):
        LOW = 'LOW', 'Low'
        MEDIUM = 'MEDIUM', 'Medium'
        HIGH = 'HIGH', 'High'

    class Status(models.TextChoices):
        UNREAD = 'UNREAD', 'Unread'
        READ = 'READ', 'Read'

    class Channel(models.TextChoices):
        IN_APP = 'in_app', 'In-app'
        EMAIL = 'email', 'Email'

    class Delivery(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    type = models.CharField(max_length=30, choices=Type.choices, default=Type.SYSTEM, db_index=True)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.UNREAD, db_index=True)
    channel = models.CharField(max_length=20, choices=Channel.choices, default=Channel.IN_APP)
    action_url = models.CharField(max_length=255, blank=True)

    # Reference to entity
    entity_type = models.CharField(max_length=20, blank=True)
    entity_id = models.UUIDField(null=True, blank=True)

    delivery_status = models.CharField(max_length=10, choices=Delivery.choices, default=Delivery.PENDING)
    delivery_attempts = models.PositiveSmallIntegerField(default=0)
    sent_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'status']),
        ]

    def __str__(self):
        return f"{self.recipient.email} - {self.title[:50]}"

    @property
    def is_read(self):
        return self.status == self.Status.READ

    def mark_sent(self):
        self.delivery_status = self.Delivery.SENT
        self.sent_at = timezone.now()
        self.save(update_fields=['delivery_status', 'sent_at', 'updated_at'])

    def mark_failed(self, reason: str = ''):
        self.delivery_status = self.Delivery.FAILED
        self.metadata = {**self.metadata, 'error': reason}
        self.save(update_fields=['delivery_status', 'metadata', 'updated_at'])

    def mark_read(self):
        if self.is_read:
            return
        self.status = self.Status.READ
        self.read_at = timezone.now()
        self.save(update_fields=['status', 'read_at', 'updated_at'])
