from decimal import Decimal

from django.core.files.base import ContentFile
from django.test import SimpleTestCase, TestCase, override_settings

from apps.ai_services.models import KnowledgeDocument
from apps.ai_services.services import DocumentIndexer, KnowledgeBaseService, SmartValidator
from apps.ai_services.services.knowledge_base import split_into_chunks
from apps.ai_services.services.text_extraction import extract_numbers
from tests.factories import EvidenceFactory, KpiActualFactory


class TextHelpersTests(SimpleTestCase):

    def test_extract_numbers(self):
        self.assertEqual(extract_numbers('Sold 1,250.5 units, 3 returns, -2 adj'), [1250.5, 3.0, -2.0])

    def test_split_into_chunks_respects_size(self):
        chunks = split_into_chunks('alpha beta gamma delta epsilon', 11)
        self.assertEqual(chunks, ['alpha beta', 'gamma delta', 'epsilon'])

    def test_split_empty_text(self):
        self.assertEqual(split_into_chunks('   ', 100), [])


class SmartValidatorTests(TestCase):

    def test_matching_evidence_passes(self):
        evidence = EvidenceFactory()
        verdict = SmartValidator().validate_evidence(evidence.actual)
        self.assertTrue(verdict['passed'])
        self.assertEqual(verdict['discrepancies'], [])
        self.assertIn(92.0, verdict['extracted_values'])
        self.assertEqual(verdict['confidence'], 1.0)

    def test_missing_evidence_is_flagged(self):
        actual = KpiActualFactory()
        verdict = SmartValidator().validate_evidence(actual)
        self.assertFalse(verdict['passed'])
        self.assertIn('No evidence uploaded', verdict['discrepancies'])

    def test_value_outside_tolerance_is_flagged(self):
        evidence = EvidenceFactory(actual__actual_value=Decimal('120'))
        verdict = SmartValidator().validate_evidence(evidence.actual)
        self.assertIn('Claimed value 120 not found in evidence', verdict['discrepancies'])

    def test_value_within_tolerance_passes(self):
        evidence = EvidenceFactory(actual__actual_value=Decimal('95'))
        self.assertTrue(SmartValidator().validate_evidence(evidence.actual)['passed'])

    def test_implausible_value_is_flagged(self):
        evidence = EvidenceFactory(
            actual__actual_value=Decimal('400'),
            file__data=b'Revenue 2026-03: 400 USD',
        )
        verdict = SmartValidator().validate_evidence(evidence.actual)
        self.assertEqual(len(verdict['discrepancies']), 1)
        self.assertIn('3x the target', verdict['discrepancies'][0])

    def test_period_must_be_mentioned(self):
        evidence = EvidenceFactory(file__data=b'Revenue: 92 USD')
        verdict = SmartValidator().validate_evidence(evidence.actual)
        self.assertIn('Evidence does not mention period 2026-03', verdict['discrepancies'])


@override_settings(KNOWLEDGE_CHUNK_SIZE=20)
class KnowledgeBaseTests(TestCase):

    def _document(self, text, **fields):
        document = KnowledgeDocument(
            source=fields.pop('source', KnowledgeDocument.Source.COMPANY_DOCUMENT),
            title=fields.pop('title', 'Sales handbook'),
            mime_type='text/plain',
            **fields,
        )
        document.file.save('handbook.txt', ContentFile(text.encode()), save=False)
        document.save()
        return document

    def test_index_document_stores_chunks(self):
        document = self._document('revenue targets are reviewed monthly by the sales team')
        count = KnowledgeBaseService.index_document(document)
        document.refresh_from_db()
        self.assertGreater(count, 1)
        self.assertEqual(document.chunks.count(), count)
        self.assertTrue(document.ai_indexed)
        self.assertIsNotNone(document.ai_indexed_at)

    def test_reindex_replaces_chunks(self):
        document = self._document('short text')
        KnowledgeBaseService.index_document(document)
        KnowledgeBaseService.index_document(document)
        self.assertEqual(document.chunks.count(), 1)

    def test_retrieve_context_ranks_by_keyword_hits(self):
        first = self._document('revenue revenue growth', department='Sales')
        second = self._document('hiring plan and revenue', department='HR', title='HR plan')
        KnowledgeBaseService.index_document(first)
        KnowledgeBaseService.index_document(second)

        results = KnowledgeBaseService.retrieve_context('revenue')
        self.assertEqual(results[0]['document_id'], str(first.id))
        self.assertEqual(results[0]['score'], 2)

        results = KnowledgeBaseService.retrieve_context('revenue', department='hr')
        self.assertEqual([r['document_id'] for r in results], [str(second.id)])

    def test_indexer_records_failures_and_continues(self):
        good = self._document('revenue targets')
        bad = self._document('')
        result = DocumentIndexer().index_pending()
        self.assertEqual(result['indexed'], 1)
        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['errors'][0]['id'], str(bad.id))
        bad.refresh_from_db()
        good.refresh_from_db()
        self.assertTrue(good.ai_indexed)
        self.assertFalse(bad.ai_indexed)
        self.assertEqual(bad.index_error, 'Document has no extractable text')

    def test_status_counts_per_source(self):
        document = self._document('revenue targets')
        self._document('more text', source=KnowledgeDocument.Source.KPI_RESOURCE)
        KnowledgeBaseService.index_document(document)
        status = DocumentIndexer.status()
        self.assertEqual(status['total'], 2)
        self.assertEqual(status['indexed'], 1)
        self.assertEqual(status['pending'], 1)
        self.assertEqual(status['by_source']['KPI_RESOURCE'], {'total': 1, 'indexed': 0, 'pending': 1})
        self.assertEqual(status['by_source']['KPI_LIBRARY_UPLOAD']['total'], 0)
