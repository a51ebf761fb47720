from decimal import Decimal

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.notifications.models import Notification
from apps.performance.models import Cycle, KpiDefinition
from apps.workflows.models import Approval
from apps.workflows.states import KPI, WorkflowStatus
from tests.factories import CycleFactory, KpiDefinitionFactory, UserFactory


class KpiWorkflowTestCase(APITestCase):

    def setUp(self):
        self.hod = UserFactory(email='sales.hod@intersnack.com.vn', role=User.Role.MANAGER)
        self.line_manager = UserFactory(email='sales.lm@intersnack.com.vn', role=User.Role.LINE_MANAGER)
        self.staff = UserFactory(
            email='sales.staff@intersnack.com.vn',
            manager=self.line_manager,
            hod=self.hod,
        )
        self.cycle = CycleFactory()
        self.kpis = [KpiDefinitionFactory(owner=self.staff, cycle=self.cycle) for _ in range(4)]
        self.kpi = self.kpis[0]

    def submit(self, kpi=None):
        self.client.force_authenticate(self.staff)
        return self.client.post(reverse('kpi-submit', args=[(kpi or self.kpi).pk]), format='json')

    def decide(self, user, method='post', data=None, kpi=None):
        self.client.force_authenticate(user)
        url = reverse('kpi-approve', args=[(kpi or self.kpi).pk])
        return getattr(self.client, method)(url, data or {}, format='json')


class KpiCreateTests(KpiWorkflowTestCase):

    def payload(self, **overrides):
        data = {
            'cycle': str(self.cycle.pk),
            'title': 'Reduce customer complaints',
            'type': 'QUANT_LOWER_BETTER',
            'unit': 'tickets',
            'target': '10',
            'weight': '20',
        }
        data.update(overrides)
        return data

    def test_create_kpi(self):
        KpiDefinition.objects.filter(pk__in=[k.pk for k in self.kpis[1:]]).delete()
        self.client.force_authenticate(self.staff)
        response = self.client.post(reverse('kpi-list'), self.payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()['data']
        self.assertEqual(data['status'], WorkflowStatus.DRAFT)
        self.assertEqual(data['owner']['id'], str(self.staff.pk))
        self.assertTrue(data['is_editable'])

    def test_sixth_kpi_is_rejected(self):
        KpiDefinitionFactory(owner=self.staff, cycle=self.cycle, weight=Decimal('0'))
        self.client.force_authenticate(self.staff)
        response = self.client.post(reverse('kpi-list'), self.payload(weight='5'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Cannot add more than 5 KPIs')

    def test_weight_above_maximum_is_rejected(self):
        KpiDefinition.objects.filter(pk__in=[k.pk for k in self.kpis]).delete()
        self.client.force_authenticate(self.staff)
        response = self.client.post(reverse('kpi-list'), self.payload(weight='45'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('between 5% and 40%', response.json()['error'])

    def test_closed_cycle_rejects_new_kpis(self):
        self.cycle.status = Cycle.Status.CLOSED
        self.cycle.save()
        self.client.force_authenticate(self.staff)
        response = self.client.post(reverse('kpi-list'), self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Cycle is not open for goal setting')

    def test_milestone_requires_valid_scale(self):
        KpiDefinition.objects.filter(pk__in=[k.pk for k in self.kpis]).delete()
        self.client.force_authenticate(self.staff)
        response = self.client.post(
            reverse('kpi-list'),
            self.payload(type='MILESTONE', scoring_scale=[]),
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_sees_only_own_kpis(self):
        KpiDefinitionFactory(cycle=self.cycle)
        self.client.force_authenticate(self.staff)
        response = self.client.get(reverse('kpi-list'))
        self.assertEqual(response.json()['pagination']['count'], 4)

    def test_manager_sees_reports_kpis(self):
        KpiDefinitionFactory(cycle=self.cycle)
        self.client.force_authenticate(self.line_manager)
        response = self.client.get(reverse('kpi-list'))
        self.assertEqual(response.json()['pagination']['count'], 4)

    def test_validate_dry_run(self):
        self.client.force_authenticate(self.staff)
        kpis = [
            {'title': f'Increase metric number {i}', 'unit': 'USD', 'target': 100, 'weight': 30,
             'data_source': 'CRM', 'description': 'Tracked monthly'}
            for i in range(3)
        ]
        response = self.client.post(reverse('kpi-validate'), {'kpis': kpis}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()['data']
        self.assertFalse(data['valid'])
        self.assertIn('Total weight must equal 100% (currently 90%)', data['errors'])
        self.assertEqual(data['suggested_weights'], [34, 33, 33])
        self.assertEqual(data['summary'], '3/3-5 KPIs | Weight: 90% (10% remaining)')


class KpiApprovalFlowTests(KpiWorkflowTestCase):

    def test_submit_creates_level_one_approval(self):
        response = self.submit()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.WAITING_LINE_MGR)
        self.assertIsNotNone(self.kpi.submitted_at)

        approval = Approval.objects.get(entity_type=KPI, entity_id=self.kpi.pk)
        self.assertEqual(approval.level, 1)
        self.assertEqual(approval.approver, self.line_manager)
        self.assertEqual(approval.status, Approval.Status.PENDING)
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.line_manager,
                type=Notification.Type.APPROVAL_REQUIRED,
                entity_id=self.kpi.pk,
            ).exists()
        )

    def test_invalid_set_blocks_submission(self):
        self.kpis[1].weight = Decimal('10')
        self.kpis[1].save()
        response = self.submit()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'KPI set validation failed')
        self.assertIn('Total weight must equal 100% (currently 85%)', response.json()['details']['errors'])
        self.assertFalse(Approval.objects.exists())

    def test_two_level_approval(self):
        self.submit()

        response = self.decide(self.line_manager, data={'comment': 'Looks fine'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.WAITING_MANAGER)
        level_two = Approval.objects.get(entity_id=self.kpi.pk, level=2)
        self.assertEqual(level_two.approver, self.hod)
        self.assertEqual(level_two.status, Approval.Status.PENDING)

        response = self.decide(self.hod)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.APPROVED)
        self.assertEqual(self.kpi.approved_by, self.hod)
        self.assertFalse(Approval.objects.filter(entity_id=self.kpi.pk).pending().exists())
        self.assertTrue(
            Notification.objects.filter(recipient=self.staff, type=Notification.Type.KPI_APPROVED).exists()
        )

    @override_settings(KPI_GENERAL_HOD_EMAIL='')
    def test_no_level_two_approver_finalizes_at_level_one(self):
        self.staff.hod = None
        self.staff.save()
        self.hod.department = 'Finance'
        self.hod.save()

        self.submit()
        self.decide(self.line_manager)

        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.APPROVED)
        self.assertFalse(Approval.objects.filter(entity_id=self.kpi.pk, level=2).exists())

    def test_same_person_at_both_levels_is_asked_once(self):
        self.staff.hod = self.line_manager
        self.staff.save()

        self.submit()
        self.decide(self.line_manager)

        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.APPROVED)
        self.assertEqual(Approval.objects.filter(entity_id=self.kpi.pk).count(), 1)

    def test_reject_requires_comment(self):
        self.submit()
        response = self.decide(self.line_manager, method='patch')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.WAITING_LINE_MGR)

    def test_reject_and_resubmit(self):
        self.submit()
        response = self.decide(self.line_manager, method='patch', data={'comment': 'Target too low'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.REJECTED)
        self.assertEqual(self.kpi.rejection_reason, 'Target too low')
        self.assertTrue(
            Notification.objects.filter(recipient=self.staff, type=Notification.Type.KPI_REJECTED).exists()
        )

        response = self.submit()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.WAITING_LINE_MGR)
        self.assertEqual(self.kpi.rejection_reason, '')

    def test_only_assigned_approver_may_decide(self):
        self.submit()
        outsider = UserFactory(role=User.Role.LINE_MANAGER, department='Finance')
        response = self.decide(outsider)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_may_decide_for_approver(self):
        self.submit()
        admin = UserFactory(role=User.Role.ADMIN)
        self.decide(admin)
        approval = Approval.objects.get(entity_id=self.kpi.pk, level=1)
        self.assertTrue(approval.is_proxy)
        self.assertEqual(approval.decided_by, admin)

    def test_resubmitting_pending_kpi_is_an_invalid_transition(self):
        self.submit()
        response = self.submit()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Cannot submit a kpi in status WAITING_LINE_MGR')

    def test_approving_draft_is_refused(self):
        response = self.decide(self.line_manager)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'KPI is not awaiting approval')

    def test_editing_pending_kpi_is_refused(self):
        self.submit()
        response = self.client.patch(reverse('kpi-detail', args=[self.kpi.pk]), {'unit': 'VND'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_submit_set(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post(reverse('kpi-submit-set'), {'cycle': str(self.cycle.pk)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.json()['data']['approvals']), 4)
        self.assertEqual(
            KpiDefinition.objects.filter(owner=self.staff, status=WorkflowStatus.WAITING_LINE_MGR).count(),
            4,
        )
