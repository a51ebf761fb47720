from django.core.files.base import ContentFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.ai_services.models import KnowledgeDocument
from apps.authentication.models import User
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.performance.models import Cycle
from apps.workflows.models import Approval
from apps.workflows.states import WorkflowStatus
from tests.factories import ApprovalFactory, CycleFactory, KpiActualFactory, KpiDefinitionFactory, UserFactory
from tests.test_approvals_api import age


class DashboardTests(APITestCase):
    url = '/api/v1/performance/dashboard/'

    def setUp(self):
        self.cycle = CycleFactory(name='FY2026')
        self.admin = UserFactory(role=User.Role.ADMIN)
        self.line_manager = UserFactory(role=User.Role.LINE_MANAGER)
        self.staff = UserFactory(manager=self.line_manager)

    def get(self, user):
        self.client.force_authenticate(user)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.json()['data']

    def test_requires_authentication(self):
        self.assertEqual(self.client.get(reverse('dashboard')).status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_sees_system_counts(self):
        UserFactory(status=User.Status.INACTIVE)
        CycleFactory(status=Cycle.Status.CLOSED)
        KpiDefinitionFactory(cycle=self.cycle, status=WorkflowStatus.APPROVED)
        KpiDefinitionFactory(cycle=self.cycle, status=WorkflowStatus.WAITING_MANAGER)
        KpiDefinitionFactory(cycle=self.cycle)
        document = KnowledgeDocument(source=KnowledgeDocument.Source.COMPANY_DOCUMENT, title='Handbook')
        document.file.save('handbook.txt', ContentFile(b'handbook'), save=False)
        document.save()

        data = self.get(self.admin)

        self.assertEqual(data['user_role'], User.Role.ADMIN)
        self.assertEqual(data['active_cycle']['name'], 'FY2026')
        self.assertEqual(data['cycles'], {'total': 2, 'active': 1, 'closed': 1})
        self.assertEqual(data['users']['active'], data['users']['total'] - 1)
        self.assertEqual(data['users']['by_role'][User.Role.ADMIN], 1)
        self.assertEqual(data['kpis']['total'], 3)
        self.assertEqual(data['kpis']['approved'], 1)
        self.assertEqual(data['kpis']['pending'], 1)
        self.assertEqual(data['kpis']['draft'], 1)
        self.assertEqual(data['change_requests'], {'total': 0, 'pending': 0, 'completed': 0})
        self.assertEqual(data['documents'], {'total': 1, 'ai_indexed': 0, 'by_source': {'COMPANY_DOCUMENT': 1}})

    def test_manager_sees_team_and_inbox(self):
        KpiDefinitionFactory(owner=self.staff, cycle=self.cycle, status=WorkflowStatus.WAITING_LINE_MGR)
        KpiDefinitionFactory(owner=self.staff, cycle=self.cycle)
        KpiDefinitionFactory(cycle=self.cycle, status=WorkflowStatus.APPROVED)
        UserFactory(manager=self.line_manager, status=User.Status.INACTIVE)
        age(ApprovalFactory(approver=self.line_manager), days=5)
        latest = ApprovalFactory(approver=self.line_manager)
        ApprovalFactory(approver=self.line_manager, status=Approval.Status.APPROVED)

        data = self.get(self.line_manager)

        self.assertEqual(data['team'], {'total_members': 2, 'active_members': 1})
        self.assertEqual(data['kpis']['total'], 2)
        self.assertEqual(data['kpis']['pending'], 1)
        self.assertEqual(data['kpis']['draft'], 1)
        self.assertEqual(data['pending_approvals']['count'], 2)
        self.assertEqual(data['pending_approvals']['overdue'], 1)
        self.assertEqual(data['pending_approvals']['items'][0]['id'], str(latest.pk))
        self.assertNotIn('users', data)

    def test_staff_sees_own_work(self):
        kpi = KpiDefinitionFactory(owner=self.staff, cycle=self.cycle, status=WorkflowStatus.APPROVED)
        KpiDefinitionFactory(owner=self.staff, cycle=self.cycle, status=WorkflowStatus.LOCKED_GOALS)
        KpiActualFactory(kpi=kpi, period='2026-01', status=WorkflowStatus.APPROVED)
        KpiActualFactory(kpi=kpi, period='2026-02', status=WorkflowStatus.WAITING_LINE_MGR)
        KpiActualFactory(kpi=kpi, period='2026-03')
        KpiDefinitionFactory(cycle=self.cycle)
        NotificationService.notify(
            recipient=self.staff,
            notification_type=Notification.Type.CYCLE_OPENED,
            title='FY2026 is open',
            message='Set your goals',
        )

        data = self.get(self.staff)

        self.assertEqual(data['user_name'], self.staff.name)
        self.assertEqual(data['kpis']['total'], 2)
        self.assertEqual(data['kpis']['approved'], 1)
        self.assertEqual(data['kpis']['locked'], 1)
        self.assertEqual(data['actuals'], {'total': 3, 'draft': 1, 'submitted': 1, 'approved': 1, 'rejected': 0})
        self.assertEqual(data['notifications']['unread'], 1)
        self.assertEqual(data['notifications']['items'][0]['title'], 'FY2026 is open')

    def test_no_active_cycle(self):
        Cycle.objects.update(status=Cycle.Status.CLOSED)
        self.assertIsNone(self.get(self.staff)['active_cycle'])
