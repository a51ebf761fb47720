import datetime
from decimal import Decimal

import factory

from apps.authentication.models import User
from apps.organization.models import OrgUnit
from apps.performance.models import Cycle, Evidence, KpiActual, KpiDefinition
from apps.performance.services import scoring
from apps.workflows.models import Approval
from apps.workflows.states import KPI, WorkflowStatus


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        django_get_or_create = ('email',)

    email = factory.Sequence(lambda n: f'user{n}@intersnack.com.vn')
    name = factory.Sequence(lambda n: f'User {n}')
    role = User.Role.STAFF
    department = 'Sales'
    status = User.Status.ACTIVE


class OrgUnitFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrgUnit

    name = factory.Sequence(lambda n: f'Unit {n}')
    type = OrgUnit.UnitType.DEPARTMENT


class CycleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Cycle

    name = factory.Sequence(lambda n: f'FY{2026 + n}')
    type = Cycle.CycleType.ANNUAL
    period_start = datetime.date(2026, 1, 1)
    period_end = datetime.date(2026, 12, 31)
    status = Cycle.Status.ACTIVE


class KpiDefinitionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = KpiDefinition

    owner = factory.SubFactory(UserFactory)
    cycle = factory.SubFactory(CycleFactory)
    title = factory.Sequence(lambda n: f'Increase monthly revenue {n}')
    description = 'Revenue booked in the CRM'
    type = scoring.HIGHER_BETTER
    unit = 'USD'
    target = Decimal('100')
    weight = Decimal('25')
    data_source = 'CRM'
    status = WorkflowStatus.DRAFT


class KpiActualFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = KpiActual

    kpi = factory.SubFactory(KpiDefinitionFactory, status=WorkflowStatus.APPROVED)
    owner = factory.LazyAttribute(lambda actual: actual.kpi.owner)
    period = '2026-03'
    actual_value = Decimal('92')
    status = WorkflowStatus.DRAFT


class EvidenceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Evidence

    actual = factory.SubFactory(KpiActualFactory)
    file = factory.django.FileField(filename='report.txt', data=b'Revenue 2026-03: 92 USD')
    file_name = 'report.txt'
    mime_type = 'text/plain'
    size = 23
    uploaded_by = factory.LazyAttribute(lambda evidence: evidence.actual.owner)


class ApprovalFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Approval

    entity_type = KPI
    entity_id = factory.LazyAttribute(lambda approval: KpiDefinitionFactory(status=WorkflowStatus.WAITING_LINE_MGR).pk)
    level = 1
    approver = factory.SubFactory(UserFactory, role=User.Role.LINE_MANAGER)
    submitted_by = factory.SubFactory(UserFactory)
    status = Approval.Status.PENDING
