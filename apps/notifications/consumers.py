"""Notification consumer - pushes new notifications to the signed-in user."""

from channels.generic.websocket import AsyncJsonWebsocketConsumer


def user_group(user_id) -> str:
    return f"notifications_{user_id}"


class NotificationConsumer(AsyncJsonWebsocketConsumer):

    async def connect(self):
        self.user = self.scope.get("user")
        if not self.user or self.user.is_anonymous:
            await self.close(code=4401)
            return

        self.group_name = user_group(self.user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if getattr(self, "group_name", None):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        # Push-only channel; a ping keeps idle proxies from closing it
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})

    async def broadcast_notification(self, event):
        await self.send_json({
            "event": event["event"],
            "payload": event["payload"],
        })
