from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.notifications.models import Notification
from apps.workflows.models import Approval
from apps.workflows.tasks import remind_overdue_approvals_task
from tests.factories import ApprovalFactory, UserFactory


def age(approval, days, hours=0):
    Approval.objects.filter(pk=approval.pk).update(created_at=timezone.now() - timedelta(days=days, hours=hours))
    approval.refresh_from_db()
    return approval


class ApprovalInboxTests(APITestCase):
    url = '/api/v1/approvals/'

    def setUp(self):
        self.approver = UserFactory(role=User.Role.LINE_MANAGER)
        self.client.force_authenticate(self.approver)

    def test_staff_cannot_open_inbox(self):
        self.client.force_authenticate(UserFactory())
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['error'], 'Only approvers can access approvals.')

    def test_lists_own_pending_approvals_by_default(self):
        mine = ApprovalFactory(approver=self.approver)
        ApprovalFactory(approver=self.approver, status=Approval.Status.APPROVED)
        ApprovalFactory()

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [item['id'] for item in response.json()['data']]
        self.assertEqual(ids, [str(mine.pk)])
        self.assertIsNotNone(response.json()['data'][0]['subject'])

    def test_status_filter_overrides_default(self):
        ApprovalFactory(approver=self.approver)
        decided = ApprovalFactory(approver=self.approver, status=Approval.Status.APPROVED)
        response = self.client.get(self.url, {'status': 'APPROVED'})
        self.assertEqual([item['id'] for item in response.json()['data']], [str(decided.pk)])

    def test_overdue_items_come_first(self):
        old = age(ApprovalFactory(approver=self.approver), days=5)
        ApprovalFactory(approver=self.approver)

        response = self.client.get(self.url)

        data = response.json()['data']
        self.assertEqual(data[0]['id'], str(old.pk))
        self.assertTrue(data[0]['is_overdue'])
        self.assertEqual(data[0]['days_pending'], 5)
        self.assertFalse(data[1]['is_overdue'])

    def test_three_days_is_not_yet_overdue(self):
        approval = age(ApprovalFactory(approver=self.approver), days=3)
        self.assertFalse(approval.is_overdue)
        self.assertTrue(age(approval, days=4).is_overdue)

    def test_three_and_a_half_days_is_not_overdue(self):
        approval = age(ApprovalFactory(approver=self.approver), days=3, hours=12)
        newer = ApprovalFactory(approver=self.approver)

        data = self.client.get(self.url).json()['data']
        self.assertEqual([item['id'] for item in data], [str(newer.pk), str(approval.pk)])
        self.assertEqual(data[1]['days_pending'], 3)
        self.assertFalse(data[1]['is_overdue'])

        stats = self.client.get(reverse('approval-stats')).json()['data']
        self.assertEqual(stats['overdue'], 0)
        self.assertFalse(Approval.objects.overdue().exists())

    def test_admin_scope_all(self):
        admin = UserFactory(role=User.Role.ADMIN)
        ApprovalFactory(approver=self.approver)
        ApprovalFactory()
        self.client.force_authenticate(admin)

        self.assertEqual(self.client.get(self.url).json()['pagination']['count'], 0)
        self.assertEqual(self.client.get(self.url, {'scope': 'all'}).json()['pagination']['count'], 2)

    def test_non_admin_scope_all_is_ignored(self):
        ApprovalFactory(approver=self.approver)
        ApprovalFactory()
        response = self.client.get(self.url, {'scope': 'all'})
        self.assertEqual(response.json()['pagination']['count'], 1)

    def test_stats(self):
        age(ApprovalFactory(approver=self.approver), days=10)
        ApprovalFactory(approver=self.approver)
        ApprovalFactory(approver=self.approver, status=Approval.Status.REJECTED)

        response = self.client.get(reverse('approval-stats'))

        self.assertEqual(
            response.json()['data'],
            {'total': 3, 'pending': 2, 'overdue': 1, 'approved': 0, 'rejected': 1},
        )

    def test_reject_via_decide_requires_comment(self):
        approval = ApprovalFactory(approver=self.approver)
        response = self.client.post(reverse('approval-decide', args=[approval.pk]), {'action': 'REJECT'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        approval.refresh_from_db()
        self.assertEqual(approval.status, Approval.Status.PENDING)


class OverdueReminderTaskTests(APITestCase):

    def test_one_reminder_per_approver(self):
        approver = UserFactory(role=User.Role.LINE_MANAGER)
        age(ApprovalFactory(approver=approver), days=6)
        age(ApprovalFactory(approver=approver), days=9)
        ApprovalFactory(approver=approver)

        result = remind_overdue_approvals_task.apply().get()

        self.assertEqual(result, {'approvers': 1, 'overdue': 2})
        reminder = Notification.objects.get(recipient=approver, type=Notification.Type.REMINDER)
        self.assertEqual(reminder.title, '2 approval(s) overdue')
