from unittest import mock

from django.core.files.base import ContentFile
from django.db import IntegrityError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.ai_services.models import KnowledgeDocument
from apps.ai_services.services import INDEXING_LOCK_NAME, DocumentIndexer, KnowledgeBaseService
from apps.ai_services.views import IndexDocumentsView
from apps.authentication.models import User
from apps.core.locks import LockManager
from tests.factories import UserFactory


def make_document(text, source=KnowledgeDocument.Source.COMPANY_DOCUMENT):
    document = KnowledgeDocument(source=source, title='Policy', mime_type='text/plain')
    document.file.save('policy.txt', ContentFile(text.encode()), save=False)
    document.save()
    return document


class IndexDocumentsTests(APITestCase):
    url = '/api/v1/admin/index-documents/'

    def setUp(self):
        self.locks = LockManager()
        patcher = mock.patch.object(IndexDocumentsView, 'lock_manager', self.locks)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client.force_authenticate(UserFactory(role=User.Role.ADMIN))

    def test_non_admin_is_forbidden(self):
        self.client.force_authenticate(UserFactory(role=User.Role.MANAGER))
        self.assertEqual(self.client.post(self.url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)

    def test_indexes_pending_documents_and_releases_lock(self):
        make_document('monthly revenue review')
        make_document('quality targets', source=KnowledgeDocument.Source.KPI_RESOURCE)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['indexed'], 2)
        self.assertEqual(response.json()['data']['failed'], 0)
        self.assertFalse(self.locks.is_locked(INDEXING_LOCK_NAME))
        self.assertEqual(KnowledgeDocument.objects.filter(ai_indexed=True).count(), 2)

    def test_concurrent_run_is_refused(self):
        held = self.locks.try_acquire(INDEXING_LOCK_NAME, 300)
        make_document('monthly revenue review')

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['error'], 'Indexing already in progress. Please wait.')
        self.assertEqual(KnowledgeDocument.objects.filter(ai_indexed=True).count(), 0)
        self.assertTrue(self.locks.release(held))

    def test_lock_is_held_while_indexing(self):
        seen = []
        locks = self.locks

        class RecordingIndexer(DocumentIndexer):
            def index_pending(self):
                seen.append(locks.is_locked(INDEXING_LOCK_NAME))
                return super().index_pending()

        with mock.patch.object(IndexDocumentsView, 'indexer_class', RecordingIndexer):
            self.client.post(self.url)

        self.assertEqual(seen, [True])

    def test_lock_released_when_indexing_fails(self):
        class BrokenIndexer(DocumentIndexer):
            def index_pending(self):
                raise RuntimeError('storage unavailable')

        with mock.patch.object(IndexDocumentsView, 'indexer_class', BrokenIndexer):
            response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(self.locks.is_locked(INDEXING_LOCK_NAME))

    def test_unexpected_document_error_does_not_stop_the_batch(self):
        broken = make_document('first document')
        make_document('second document')

        class FlakyKnowledgeBase(KnowledgeBaseService):
            @classmethod
            def index_document(cls, document):
                if document.pk == broken.pk:
                    raise IntegrityError('duplicate chunk position')
                return super().index_document(document)

        result = DocumentIndexer(knowledge_base=FlakyKnowledgeBase).index_pending()

        self.assertEqual(result['indexed'], 1)
        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['errors'], [{'id': str(broken.pk), 'error': 'duplicate chunk position'}])
        broken.refresh_from_db()
        self.assertFalse(broken.ai_indexed)
        self.assertEqual(broken.index_error, 'duplicate chunk position')

    def test_status_reports_counts_and_lock(self):
        indexed = make_document('indexed text')
        make_document('pending text')
        DocumentIndexer().index_pending()
        make_document('new arrival', source=KnowledgeDocument.Source.KPI_LIBRARY_UPLOAD)
        self.locks.try_acquire(INDEXING_LOCK_NAME, 300)

        data = self.client.get(self.url).json()['data']

        self.assertEqual(data['total'], 3)
        self.assertEqual(data['indexed'], 2)
        self.assertEqual(data['pending'], 1)
        self.assertEqual(data['by_source']['KPI_LIBRARY_UPLOAD']['pending'], 1)
        self.assertTrue(data['in_progress'])
        self.assertTrue(KnowledgeDocument.objects.get(pk=indexed.pk).ai_indexed)


class KnowledgeDocumentApiTests(APITestCase):

    def test_staff_can_read_but_not_write(self):
        make_document('handbook')
        self.client.force_authenticate(UserFactory())

        self.assertEqual(self.client.get(reverse('knowledge-document-list')).status_code, status.HTTP_200_OK)
        response = self.client.post(reverse('knowledge-document-list'), {'title': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_context_lookup(self):
        document = make_document('revenue growth playbook for sales')
        KnowledgeBaseService.index_document(document)
        self.client.force_authenticate(UserFactory())

        response = self.client.get(reverse('knowledge-document-context'), {'q': 'revenue'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data'][0]['document_id'], str(document.pk))
