from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.notifications.models import Notification
from apps.workflows.models import Approval, ChangeRequest
from apps.workflows.services import ApprovalEngine, KpiSubject
from apps.workflows.states import WorkflowStatus
from tests.factories import KpiDefinitionFactory, UserFactory


class ChangeRequestTests(APITestCase):

    def setUp(self):
        self.admin = UserFactory(role=User.Role.ADMIN)
        self.hod = UserFactory(role=User.Role.MANAGER)
        self.line_manager = UserFactory(role=User.Role.LINE_MANAGER)
        self.staff = UserFactory(manager=self.line_manager, hod=self.hod)
        self.kpi = KpiDefinitionFactory(owner=self.staff)
        ApprovalEngine.submit(KpiSubject(self.kpi), actor=self.staff)

    def approve_kpi(self):
        ApprovalEngine.approve(Approval.objects.get(entity_id=self.kpi.pk, level=1), actor=self.line_manager)
        ApprovalEngine.approve(Approval.objects.get(entity_id=self.kpi.pk, level=2), actor=self.hod)

    def issue(self, reason='Target raised after budget review', **extra):
        self.client.force_authenticate(self.admin)
        data = {'kpi': str(self.kpi.pk), 'reason': reason, **extra}
        response = self.client.post(reverse('admin-proxy-issue-change-request'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return ChangeRequest.objects.get(pk=response.json()['data']['id'])

    def resolve(self, change_request, user, **data):
        self.client.force_authenticate(user)
        return self.client.post(reverse('change-request-resolve', args=[change_request.pk]), data, format='json')

    def test_issuing_records_pending_request(self):
        self.approve_kpi()

        change_request = self.issue(change_type=ChangeRequest.ChangeType.TARGET)

        self.assertEqual(change_request.status, ChangeRequest.Status.PENDING)
        self.assertEqual(change_request.previous_status, WorkflowStatus.APPROVED)
        self.assertEqual(change_request.change_type, ChangeRequest.ChangeType.TARGET)
        self.assertEqual(change_request.requested_by, self.admin)

    def test_owner_sees_own_requests_only(self):
        self.approve_kpi()
        change_request = self.issue()

        self.client.force_authenticate(self.staff)
        response = self.client.get(reverse('change-request-list'))
        self.assertEqual([item['id'] for item in response.json()['data']], [str(change_request.pk)])
        self.assertEqual(response.json()['data'][0]['kpi_title'], self.kpi.title)

        outsider = UserFactory()
        self.client.force_authenticate(outsider)
        self.assertEqual(self.client.get(reverse('change-request-list')).json()['pagination']['count'], 0)
        self.assertEqual(self.resolve(change_request, outsider).status_code, status.HTTP_404_NOT_FOUND)

    def test_owner_resolves_approved_kpi(self):
        self.approve_kpi()
        change_request = self.issue()

        response = self.resolve(change_request, self.staff, comment='Target updated to 120')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Change request marked as completed')
        self.assertEqual(response.json()['data']['status'], ChangeRequest.Status.COMPLETED)
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.APPROVED)
        change_request.refresh_from_db()
        self.assertEqual(change_request.resolved_by, self.staff)
        self.assertEqual(change_request.resolution_comment, 'Target updated to 120')
        self.assertIsNotNone(change_request.resolved_at)

        notice = Notification.objects.get(type=Notification.Type.CHANGE_REQUEST_COMPLETED)
        self.assertEqual(notice.recipient, self.admin)
        self.assertIn('Target updated to 120', notice.message)

    def test_admin_cannot_resolve_for_owner(self):
        self.approve_kpi()
        change_request = self.issue()

        response = self.resolve(change_request, self.admin)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['error'], 'Only the KPI owner can resolve this change request')
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.CHANGE_REQUESTED)

    def test_request_resolves_once(self):
        self.approve_kpi()
        change_request = self.issue()
        self.resolve(change_request, self.staff)

        response = self.resolve(change_request, self.staff)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'This change request has already been resolved')

    def test_request_on_unapproved_kpi_needs_resubmission(self):
        change_request = self.issue()
        self.assertEqual(change_request.previous_status, WorkflowStatus.WAITING_LINE_MGR)

        response = self.resolve(change_request, self.staff)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Resubmit the KPI for approval to complete this change request')
        change_request.refresh_from_db()
        self.assertTrue(change_request.is_pending)

    def test_resubmission_completes_pending_requests(self):
        change_request = self.issue()

        ApprovalEngine.submit(KpiSubject(self.kpi), actor=self.staff)

        change_request.refresh_from_db()
        self.assertEqual(change_request.status, ChangeRequest.Status.COMPLETED)
        self.assertEqual(change_request.resolution_comment, 'Resubmitted for approval')
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.WAITING_LINE_MGR)
