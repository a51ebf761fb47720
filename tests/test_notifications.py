import uuid

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import TransactionTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.notifications.consumers import NotificationConsumer, user_group
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from tests.factories import UserFactory


class NotificationApiTests(APITestCase):

    def setUp(self):
        self.user = UserFactory()
        self.other = UserFactory()
        self.first = NotificationService.notify(recipient=self.user, title='KPI approved')
        self.second = NotificationService.notify(
            recipient=self.user,
            title='Reminder',
            notification_type=Notification.Type.REMINDER,
        )
        NotificationService.notify(recipient=self.other, title='Not yours')
        self.client.force_authenticate(self.user)

    def test_lists_only_own_notifications(self):
        response = self.client.get(reverse('notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['pagination']['count'], 2)

    def test_filter_by_type(self):
        response = self.client.get(reverse('notification-list'), {'type': 'REMINDER'})
        self.assertEqual([item['id'] for item in response.json()['data']], [str(self.second.pk)])

    def test_unread_count_and_mark_read(self):
        count_url = reverse('notification-unread-count')
        self.assertEqual(self.client.get(count_url).json()['data']['unread_count'], 2)

        response = self.client.post(reverse('notification-mark-read', args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, Notification.Status.READ)
        self.assertIsNotNone(self.first.read_at)
        self.assertEqual(self.client.get(count_url).json()['data']['unread_count'], 1)

    def test_cannot_read_someone_elses_notification(self):
        foreign = Notification.objects.get(recipient=self.other)
        response = self.client.post(reverse('notification-mark-read', args=[foreign.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        foreign.refresh_from_db()
        self.assertEqual(foreign.status, Notification.Status.UNREAD)

    def test_mark_all_read(self):
        response = self.client.post(reverse('notification-mark-all-read'))
        self.assertEqual(response.json()['data'], {'updated': 2})
        self.assertEqual(NotificationService.unread_count(self.user), 0)
        self.assertEqual(NotificationService.unread_count(self.other), 1)

    def test_delete_own_notification(self):
        response = self.client.delete(reverse('notification-detail', args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(pk=self.first.pk).exists())


class NotificationDeliveryTests(APITestCase):

    def test_delivery_runs_after_commit(self):
        user = UserFactory()
        with self.captureOnCommitCallbacks(execute=True):
            notification = NotificationService.notify(recipient=user, title='Cycle opened')

        notification.refresh_from_db()
        self.assertEqual(notification.delivery_status, Notification.Delivery.SENT)
        self.assertEqual(notification.delivery_attempts, 1)
        self.assertIsNotNone(notification.sent_at)

    def test_missing_recipient_is_ignored(self):
        self.assertIsNone(NotificationService.notify(recipient=None, title='Nobody'))

    def test_notify_many_skips_duplicates(self):
        user = UserFactory()
        created = NotificationService.notify_many([user, user, None], title='Cycle opened')
        self.assertEqual(len(created), 1)


class _SocketUser:
    is_anonymous = False

    def __init__(self):
        self.id = uuid.uuid4()


class NotificationConsumerTests(TransactionTestCase):

    async def test_anonymous_connection_is_closed(self):
        communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
        communicator.scope['user'] = AnonymousUser()
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4401)

    async def test_pushes_group_messages_and_answers_ping(self):
        user = _SocketUser()
        communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
        communicator.scope['user'] = user
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        await communicator.send_json_to({'type': 'ping'})
        self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})

        await get_channel_layer().group_send(user_group(user.id), {
            'type': 'broadcast.notification',
            'event': 'notification.created',
            'payload': {'title': 'KPI approved'},
        })
        self.assertEqual(
            await communicator.receive_json_from(),
            {'event': 'notification.created', 'payload': {'title': 'KPI approved'}},
        )
        await communicator.disconnect()
