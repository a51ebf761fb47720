"""Typed access to the record an approval points at"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from django.apps import apps
from django.db.models import Model

from apps.core.exceptions import ResourceNotFoundException, ValidationException
from apps.workflows.states import ACTUAL, KPI


@dataclass(frozen=True)
class _Subject:
    instance: Model

    entity_type: ClassVar[str] = ''
    label: ClassVar[str] = ''
    approval_required_type: ClassVar[str] = ''
    approved_type: ClassVar[str] = ''
    rejected_type: ClassVar[str] = ''

    @property
    def entity_id(self):
        return self.instance.pk

    @property
    def owner(self):
        return self.instance.owner

    @property
    def status(self) -> str:
        return self.instance.status

    def set_status(self, status: str, **fields) -> None:
        self.instance.status = status
        for name, value in fields.items():
            setattr(self.instance, name, value)
        self.instance.save(update_fields=['status', 'updated_at', *fields])

    def summary(self) -> dict:
        return {
            'entity_type': self.entity_type,
            'entity_id': str(self.entity_id),
            'title': self.title,
            'status': self.status,
            'owner': {'id': str(self.owner.pk), 'name': self.owner.name, 'email': self.owner.email},
        }


@dataclass(frozen=True)
class KpiSubject(_Subject):
    entity_type: ClassVar[str] = KPI
    label: ClassVar[str] = 'KPI'
    approval_required_type: ClassVar[str] = 'APPROVAL_REQUIRED'
    approved_type: ClassVar[str] = 'KPI_APPROVED'
    rejected_type: ClassVar[str] = 'KPI_REJECTED'

    @property
    def kpi(self):
        return self.instance

    @property
    def title(self) -> str:
        return self.instance.title

    @property
    def action_url(self) -> str:
        return f"/kpis/{self.entity_id}"

    def summary(self) -> dict:
        data = super().summary()
        data.update({
            'cycle': str(self.instance.cycle_id),
            'type': self.instance.type,
            'target': str(self.instance.target),
            'weight': str(self.instance.weight),
            'unit': self.instance.unit,
        })
        return data


@dataclass(frozen=True)
class ActualSubject(_Subject):
    entity_type: ClassVar[str] = ACTUAL
    label: ClassVar[str] = 'Actual'
    approval_required_type: ClassVar[str] = 'ACTUAL_APPROVAL_REQUIRED'
    approved_type: ClassVar[str] = 'ACTUAL_APPROVED'
    rejected_type: ClassVar[str] = 'ACTUAL_REJECTED'

    @property
    def actual(self):
        return self.instance

    @property
    def title(self) -> str:
        return f"{self.instance.kpi.title} ({self.instance.period})"

    @property
    def action_url(self) -> str:
        return f"/actuals/{self.entity_id}"

    def summary(self) -> dict:
        data = super().summary()
        data.update({
            'kpi': str(self.instance.kpi_id),
            'period': self.instance.period,
            'actual_value': str(self.instance.actual_value),
            'percentage': str(self.instance.percentage),
            'score': self.instance.score,
            'band': self.instance.band,
        })
        return data


Subject = Union[KpiSubject, ActualSubject]

_MODELS = {
    KPI: ('performance', 'KpiDefinition', KpiSubject),
    ACTUAL: ('performance', 'KpiActual', ActualSubject),
}


class EntityResolver:
    """Load approval subjects by ``(entity_type, entity_id)``."""

    @staticmethod
    def model_for(entity_type: str):
        try:
            app_label, model_name, _ = _MODELS[entity_type]
        except KeyError:
            raise ValidationException(f"Unsupported entity type: {entity_type}", field='entity_type') from None
        return apps.get_model(app_label, model_name)

    @classmethod
    def resolve(cls, entity_type: str, entity_id, *, for_update: bool = False) -> Subject:
        model = cls.model_for(entity_type)
        queryset = model.objects.select_related('owner')
        if for_update:
            queryset = queryset.select_for_update(of=('self',))
        instance = queryset.filter(pk=entity_id).first()
        if instance is None:
            raise ResourceNotFoundException(_MODELS[entity_type][2].label, entity_id)
        return _MODELS[entity_type][2](instance)
