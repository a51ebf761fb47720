"""Organisation structure"""
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from apps.core.models import SoftDeleteModel, TimeStampedModel


class OrgUnit(TimeStampedModel, SoftDeleteModel):
    """
    Company / division / department / team grouping. The hierarchy is used
    for display and default assignment only; approval routing follows the
    user manager chain.
    """

    class UnitType(models.TextChoices):
        COMPANY = 'COMPANY', 'Company'
        DIVISION = 'DIVISION', 'Division'
        DEPARTMENT = 'DEPARTMENT', 'Department'
        TEAM = 'TEAM', 'Team'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150)
    type = models.CharField(max_length=20, choices=UnitType.choices, db_index=True)
    parent = models.ForeignKey('self', on_delete=models.PROTECT, null=True, blank=True, related_name='children')
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_units',
    )
    description = models.TextField(blank=True)

    class Meta:
        ordering = ['type', 'name']
        indexes = [
            models.Index(fields=['type', 'parent']),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"

    def ancestors(self):
        seen = set()
        node = self.parent
        while node is not None and node.pk not in seen:
            seen.add(node.pk)
            yield node
            node = node.parent

    def clean(self):
        super().clean()
        if self.parent_id and self.pk:
            if self.parent_id == self.pk or any(a.pk == self.pk for a in self.ancestors()):
                raise ValidationError({'parent': 'An org unit cannot be its own ancestor.'})
