import datetime

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.notifications.models import Notification
from apps.performance.models import Cycle
from apps.workflows.states import WorkflowStatus
from tests.factories import CycleFactory, KpiDefinitionFactory, UserFactory


class CycleApiTests(APITestCase):

    def setUp(self):
        self.admin = UserFactory(role=User.Role.ADMIN)
        self.staff = UserFactory()
        self.client.force_authenticate(self.admin)

    def action(self, cycle, name):
        return self.client.post(reverse(f'cycle-{name}', args=[cycle.pk]))

    def test_admin_creates_draft_cycle(self):
        response = self.client.post(
            reverse('cycle-list'),
            {'name': 'FY2027', 'type': 'ANNUAL', 'period_start': '2027-01-01', 'period_end': '2027-12-31'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        cycle = Cycle.objects.get(name='FY2027')
        self.assertEqual(cycle.status, Cycle.Status.DRAFT)
        self.assertEqual(cycle.created_by, self.admin)

    def test_period_end_must_follow_start(self):
        response = self.client.post(
            reverse('cycle-list'),
            {'name': 'Backwards', 'type': 'ANNUAL', 'period_start': '2027-12-31', 'period_end': '2027-01-01'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'period_end: End date must be after start date')

    def test_staff_may_read_but_not_manage(self):
        cycle = CycleFactory(status=Cycle.Status.DRAFT)
        self.client.force_authenticate(self.staff)

        self.assertEqual(self.client.get(reverse('cycle-list')).status_code, status.HTTP_200_OK)
        self.assertEqual(self.action(cycle, 'open').status_code, status.HTTP_403_FORBIDDEN)
        cycle.refresh_from_db()
        self.assertEqual(cycle.status, Cycle.Status.DRAFT)

    def test_open_notifies_active_users(self):
        inactive = UserFactory(status=User.Status.INACTIVE)
        cycle = CycleFactory(name='FY2027', status=Cycle.Status.DRAFT)

        response = self.action(cycle, 'open')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['status'], Cycle.Status.OPEN)
        cycle.refresh_from_db()
        self.assertIsNotNone(cycle.opened_at)

        notified = Notification.objects.filter(type=Notification.Type.CYCLE_OPENED)
        self.assertEqual(set(notified.values_list('recipient', flat=True)), {self.admin.pk, self.staff.pk})
        self.assertFalse(notified.filter(recipient=inactive).exists())
        self.assertEqual(notified.first().title, 'FY2027 is open')

    def test_open_notifies_only_target_users(self):
        cycle = CycleFactory(status=Cycle.Status.DRAFT, target_users=[str(self.staff.pk)])

        self.action(cycle, 'open')

        notified = Notification.objects.filter(type=Notification.Type.CYCLE_OPENED)
        self.assertEqual(list(notified.values_list('recipient', flat=True)), [self.staff.pk])

    def test_status_moves(self):
        cycle = CycleFactory(status=Cycle.Status.DRAFT)

        self.assertEqual(self.action(cycle, 'open').status_code, status.HTTP_200_OK)
        self.assertEqual(self.action(cycle, 'activate').status_code, status.HTTP_200_OK)
        response = self.action(cycle, 'close')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        cycle.refresh_from_db()
        self.assertEqual(cycle.status, Cycle.Status.CLOSED)
        self.assertIsNotNone(cycle.closed_at)

    def test_draft_can_be_activated_directly(self):
        cycle = CycleFactory(status=Cycle.Status.DRAFT)
        self.assertEqual(self.action(cycle, 'activate').json()['data']['status'], Cycle.Status.ACTIVE)

    def test_disallowed_moves(self):
        for current, name in [
            (Cycle.Status.OPEN, 'open'),
            (Cycle.Status.CLOSED, 'activate'),
            (Cycle.Status.DRAFT, 'close'),
            (Cycle.Status.INACTIVE, 'open'),
        ]:
            with self.subTest(current=current, action=name):
                cycle = CycleFactory(status=current)
                response = self.action(cycle, name)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertTrue(response.json()['error'].startswith(f'Cannot move cycle from {current}'))
                cycle.refresh_from_db()
                self.assertEqual(cycle.status, current)

    def test_lock_goals_locks_only_approved_kpis_of_the_cycle(self):
        cycle = CycleFactory()
        approved = [KpiDefinitionFactory(cycle=cycle, status=WorkflowStatus.APPROVED) for _ in range(2)]
        draft = KpiDefinitionFactory(cycle=cycle)
        elsewhere = KpiDefinitionFactory(status=WorkflowStatus.APPROVED)

        response = self.action(cycle, 'lock-goals')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data'], {'locked': 2})
        for kpi in approved:
            kpi.refresh_from_db()
            self.assertEqual(kpi.status, WorkflowStatus.LOCKED_GOALS)
        draft.refresh_from_db()
        elsewhere.refresh_from_db()
        self.assertEqual(draft.status, WorkflowStatus.DRAFT)
        self.assertEqual(elsewhere.status, WorkflowStatus.APPROVED)

    def test_current_returns_latest_active_cycle(self):
        CycleFactory(name='FY2025', period_start=datetime.date(2025, 1, 1), period_end=datetime.date(2025, 12, 31))
        latest = CycleFactory(name='FY2026')
        CycleFactory(name='FY2027', status=Cycle.Status.DRAFT, period_start=datetime.date(2027, 1, 1),
                     period_end=datetime.date(2027, 12, 31))
        self.client.force_authenticate(self.staff)

        response = self.client.get(reverse('cycle-current'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['id'], str(latest.pk))

    def test_current_without_active_cycle(self):
        CycleFactory(status=Cycle.Status.CLOSED)

        response = self.client.get(reverse('cycle-current'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.json()['data'])
        self.assertEqual(response.json()['message'], 'No active cycle found')
