from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import NotFound

from apps.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ResourceNotFoundException,
    custom_exception_handler,
    get_error_message,
)
from apps.core.locks import LockManager


class FakeClock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class LockManagerTests(SimpleTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.locks = LockManager(clock=self.clock)

    def test_second_acquire_is_refused_while_held(self):
        token = self.locks.try_acquire('indexing', ttl=60)
        self.assertIsNotNone(token)
        self.assertIsNone(self.locks.try_acquire('indexing', ttl=60))
        self.assertTrue(self.locks.is_locked('indexing'))
        self.assertEqual(self.locks.held_since('indexing'), 1000.0)

    def test_names_are_independent(self):
        self.locks.try_acquire('indexing', ttl=60)
        self.assertIsNotNone(self.locks.try_acquire('reports', ttl=60))

    def test_release_allows_reacquire(self):
        token = self.locks.try_acquire('indexing', ttl=60)
        self.assertTrue(self.locks.release(token))
        self.assertFalse(self.locks.is_locked('indexing'))
        self.assertIsNotNone(self.locks.try_acquire('indexing', ttl=60))

    def test_expired_lock_can_be_taken_over(self):
        self.locks.try_acquire('indexing', ttl=60)
        self.clock.advance(61)
        self.assertFalse(self.locks.is_locked('indexing'))
        self.assertIsNotNone(self.locks.try_acquire('indexing', ttl=60))

    def test_stale_token_does_not_release_new_holder(self):
        stale = self.locks.try_acquire('indexing', ttl=60)
        self.clock.advance(120)
        current = self.locks.try_acquire('indexing', ttl=60)

        self.assertFalse(self.locks.release(stale))
        self.assertTrue(self.locks.is_locked('indexing'))
        self.assertTrue(self.locks.release(current))

    def test_double_release(self):
        token = self.locks.try_acquire('indexing', ttl=60)
        self.locks.release(token)
        self.assertFalse(self.locks.release(token))


class ExceptionHandlerTests(SimpleTestCase):

    def test_api_exception_envelope(self):
        response = custom_exception_handler(BusinessRuleException('Cycle is closed', details={'id': 1}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'success': False, 'error': 'Cycle is closed', 'details': {'id': 1}})

    def test_conflict_and_not_found_codes(self):
        self.assertEqual(custom_exception_handler(ConflictException('Busy'), {}).status_code, 409)
        response = custom_exception_handler(ResourceNotFoundException('KPI', 'abc'), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'KPI with ID abc not found')

    def test_django_validation_error_becomes_400(self):
        response = custom_exception_handler(DjangoValidationError({'period': ['Bad period']}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'period: Bad period')

    def test_drf_exception_keeps_status(self):
        response = custom_exception_handler(NotFound(), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])

    def test_unexpected_exception_is_500(self):
        response = custom_exception_handler(RuntimeError('boom'), {})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Internal Server Error')

    def test_error_message_extraction(self):
        self.assertEqual(get_error_message({'non_field_errors': ['Nope']}), 'Nope')
        self.assertEqual(get_error_message(['First', 'Second']), 'First')
