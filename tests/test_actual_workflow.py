from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.performance.models import KpiActual
from apps.workflows.models import Approval
from apps.workflows.states import ACTUAL, WorkflowStatus
from tests.factories import KpiDefinitionFactory, UserFactory


class ActualWorkflowTests(APITestCase):

    def setUp(self):
        self.hod = UserFactory(email='ops.hod@intersnack.com.vn', role=User.Role.MANAGER)
        self.line_manager = UserFactory(email='ops.lm@intersnack.com.vn', role=User.Role.LINE_MANAGER)
        self.staff = UserFactory(
            email='ops.staff@intersnack.com.vn',
            manager=self.line_manager,
            hod=self.hod,
        )
        self.kpi = KpiDefinitionFactory(owner=self.staff, status=WorkflowStatus.APPROVED)

    def report(self, value='92', submit=True, user=None, kpi=None):
        self.client.force_authenticate(user or self.staff)
        return self.client.post(
            reverse('actual-list'),
            {
                'kpi': str((kpi or self.kpi).pk),
                'period': '2026-03',
                'actual_value': value,
                'self_comment': 'Strong quarter',
                'submit': submit,
            },
            format='json',
        )

    def pending_approval(self, actual):
        return Approval.objects.for_entity(ACTUAL, actual.pk).pending().get()

    def test_report_scores_and_submits(self):
        response = self.report()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        actual = KpiActual.objects.get(kpi=self.kpi, period='2026-03')
        self.assertEqual(actual.status, WorkflowStatus.WAITING_LINE_MGR)
        self.assertEqual(actual.percentage, Decimal('92.0'))
        self.assertEqual(actual.score, 3)
        self.assertEqual(actual.band, 'Good')
        self.assertIn('92.0%', actual.score_explanation)

        approval = self.pending_approval(actual)
        self.assertEqual(approval.level, 1)
        self.assertEqual(approval.approver, self.line_manager)

    def test_repeating_fraction_percentage_is_rounded(self):
        kpi = KpiDefinitionFactory(owner=self.staff, status=WorkflowStatus.APPROVED, target=Decimal('3'))
        response = self.report(value='1', kpi=kpi)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        actual = KpiActual.objects.get(kpi=kpi, period='2026-03')
        self.assertEqual(actual.percentage, Decimal('33.3'))
        self.assertEqual(actual.score, 1)
        self.assertEqual(actual.band, 'Needs Improvement')

    def test_first_submission_locks_goals(self):
        self.report()
        self.kpi.refresh_from_db()
        self.assertEqual(self.kpi.status, WorkflowStatus.LOCKED_GOALS)

    def test_draft_can_be_updated_in_place(self):
        first = self.report(value='50', submit=False)
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.json()['data']['status'], WorkflowStatus.DRAFT)

        second = self.report(value='130', submit=False)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        actual = KpiActual.objects.get(kpi=self.kpi, period='2026-03')
        self.assertEqual(actual.score, 5)
        self.assertEqual(actual.band, 'Outstanding')
        self.assertEqual(KpiActual.objects.filter(kpi=self.kpi).count(), 1)
        self.assertFalse(Approval.objects.exists())

    def test_period_cannot_be_reported_twice(self):
        self.report()
        response = self.report(value='95')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Actual already submitted for this period')

    def test_kpi_must_be_approved(self):
        draft_kpi = KpiDefinitionFactory(owner=self.staff)
        response = self.report(kpi=draft_kpi)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'KPI must be approved before reporting actuals')

    def test_only_owner_may_report(self):
        response = self.report(user=self.line_manager)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_period_is_rejected(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post(
            reverse('actual-list'),
            {'kpi': str(self.kpi.pk), 'period': '2026-13', 'actual_value': '10'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_two_level_approval_finalizes_score(self):
        self.report()
        actual = KpiActual.objects.get(kpi=self.kpi)

        self.client.force_authenticate(self.line_manager)
        response = self.client.post(reverse('actual-approve', args=[actual.pk]), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        actual.refresh_from_db()
        self.assertEqual(actual.status, WorkflowStatus.WAITING_MANAGER)
        self.assertEqual(self.pending_approval(actual).approver, self.hod)

        self.client.force_authenticate(self.hod)
        response = self.client.post(reverse('actual-approve', args=[actual.pk]), {}, format='json')
        actual.refresh_from_db()
        self.assertEqual(actual.status, WorkflowStatus.APPROVED)
        self.assertEqual(actual.approved_by, self.hod)
        self.assertEqual(actual.score, 3)
        self.assertIsNotNone(actual.approved_at)

    def test_same_approver_at_both_levels_collapses(self):
        self.staff.hod = self.line_manager
        self.staff.save()
        self.report()
        actual = KpiActual.objects.get(kpi=self.kpi)

        self.client.force_authenticate(self.line_manager)
        self.client.post(reverse('actual-approve', args=[actual.pk]), {}, format='json')

        actual.refresh_from_db()
        self.assertEqual(actual.status, WorkflowStatus.APPROVED)
        self.assertEqual(Approval.objects.for_entity(ACTUAL, actual.pk).count(), 1)

    def test_rejected_actual_can_be_reported_again(self):
        self.report()
        actual = KpiActual.objects.get(kpi=self.kpi)
        self.client.force_authenticate(self.line_manager)
        response = self.client.patch(
            reverse('actual-approve', args=[actual.pk]),
            {'comment': 'Evidence missing'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        actual.refresh_from_db()
        self.assertEqual(actual.status, WorkflowStatus.REJECTED)
        self.assertEqual(actual.rejection_reason, 'Evidence missing')

        response = self.report(value='101')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        actual.refresh_from_db()
        self.assertEqual(actual.status, WorkflowStatus.WAITING_LINE_MGR)
        self.assertEqual(actual.score, 4)

    def test_decided_approval_cannot_be_decided_again(self):
        self.report()
        actual = KpiActual.objects.get(kpi=self.kpi)
        approval = self.pending_approval(actual)
        url = reverse('approval-decide', args=[approval.pk])

        self.client.force_authenticate(self.line_manager)
        first = self.client.post(url, {'action': 'APPROVE'}, format='json')
        second = self.client.post(url, {'action': 'APPROVE'}, format='json')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.json()['error'], 'Approval already processed')
        self.assertEqual(Approval.objects.for_entity(ACTUAL, actual.pk).filter(level=2).count(), 1)


class EvidenceTests(APITestCase):

    def setUp(self):
        self.line_manager = UserFactory(role=User.Role.LINE_MANAGER)
        self.staff = UserFactory(manager=self.line_manager)
        self.kpi = KpiDefinitionFactory(owner=self.staff, status=WorkflowStatus.APPROVED)
        self.client.force_authenticate(self.staff)
        self.client.post(
            reverse('actual-list'),
            {'kpi': str(self.kpi.pk), 'period': '2026-03', 'actual_value': '92', 'submit': False},
            format='json',
        )
        self.actual = KpiActual.objects.get(kpi=self.kpi)

    def upload(self, content=b'Revenue 2026-03: 92 USD', name='report.txt'):
        upload = SimpleUploadedFile(name, content, content_type='text/plain')
        return self.client.post(
            reverse('actual-evidence', args=[self.actual.pk]),
            {'file': upload},
            format='multipart',
        )

    def test_upload_evidence(self):
        response = self.upload()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['data']['file_name'], 'report.txt')
        self.assertEqual(self.actual.evidence.count(), 1)

    def test_disallowed_extension_is_rejected(self):
        response = self.upload(name='payload.exe')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.actual.evidence.count(), 0)

    def test_verify_matching_evidence(self):
        self.upload()
        response = self.client.post(reverse('actual-verify', args=[self.actual.pk]), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.json()['data']['verification']['passed'])
        self.actual.refresh_from_db()
        self.assertEqual(self.actual.ai_verification_status, KpiActual.AiVerification.VERIFIED)
        self.assertEqual(self.actual.ai_discrepancies, [])

    def test_verify_flags_mismatch(self):
        self.upload(content=b'Revenue 2026-03: 40 USD')
        response = self.client.post(reverse('actual-verify', args=[self.actual.pk]), {}, format='json')

        self.assertEqual(response.json()['message'], 'Evidence flagged for review')
        self.actual.refresh_from_db()
        self.assertEqual(self.actual.ai_verification_status, KpiActual.AiVerification.FLAGGED)
        self.assertIn('Claimed value 92 not found in evidence', self.actual.ai_discrepancies)
