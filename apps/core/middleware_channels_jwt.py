"""
JWT Authentication Middleware for Django Channels (WebSocket)

Extracts the access token from:
  1. Query string: ?token=<jwt>
  2. Sec-WebSocket-Protocol header (``Bearer.<jwt>``)

On a valid token for an ACTIVE user, sets scope["user"]; otherwise
scope["user"] is AnonymousUser.
"""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        token = self._extract_token(scope)

        if token:
            scope["user"] = await self._authenticate(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    @staticmethod
    def _extract_token(scope):
        query_string = scope.get("query_string", b"").decode("utf-8", errors="ignore")
        params = parse_qs(query_string)
        token = params.get("token", [None])[0]
        if token:
            return token

        headers = dict(scope.get("headers", []))
        protocols = headers.get(b"sec-websocket-protocol", b"").decode("utf-8", errors="ignore")
        for proto in protocols.split(","):
            proto = proto.strip()
            if proto.startswith("Bearer."):
                return proto[7:]

        return None

    @database_sync_to_async
    def _authenticate(self, raw_token: str):
        User = get_user_model()
        try:
            user_id = AccessToken(raw_token).get("user_id")
        except TokenError as exc:
            logger.warning("ws_jwt_auth_failed error=%s", exc)
            return AnonymousUser()
        if not user_id:
            return AnonymousUser()

        user = User.objects.active().filter(id=user_id).first()
        if user is None:
            logger.warning("ws_jwt_user_not_found")
            return AnonymousUser()
        return user
