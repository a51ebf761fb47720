"""
Authentication Views
"""

import logging

from rest_framework import viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from apps.core.permissions import IsAdminOrReadOnly
from apps.core.response import success_response
from apps.core.throttling import LoginRateThrottle

from .filters import UserFilter
from .models import User
from .serializers import LoginSerializer, LogoutSerializer, UserCreateSerializer, UserSerializer
from .services.login_service import LoginService

logger = logging.getLogger(__name__)


# =====================================================
# LOGIN
# =====================================================

class LoginView(APIView):
    """
    Company-email login. Unknown addresses on an allowed domain are
    provisioned on first login; other domains get 403.
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [LoginRateThrottle]
    serializer_class = LoginSerializer

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = LoginService.login(
            serializer.validated_data['email'],
            serializer.validated_data.get('name') or None,
        )
        refresh = RefreshToken.for_user(result.user)
        logger.info('User %s logged in (created=%s)', result.user.id, result.created)
        return success_response(
            data={
                'user': UserSerializer(result.user).data,
                'access': str(refresh.access_token),
                'refresh': str(refresh),
                'created': result.created,
            },
            message='Login successful',
        )


# =====================================================
# LOGOUT
# =====================================================

class LogoutView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = LogoutSerializer

    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            RefreshToken(serializer.validated_data['refresh']).blacklist()
        except TokenError as exc:
            raise ValidationError({'refresh': str(exc)})
        return success_response(message='Logged out')


# =====================================================
# PROFILE
# =====================================================

class ProfileView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    def get(self, request):
        return success_response(data=UserSerializer(request.user).data)


# =====================================================
# USER MANAGEMENT
# =====================================================

class UserViewSet(viewsets.ModelViewSet):
    """
    Any authenticated user may browse the directory; only admins create,
    edit or deactivate accounts. DELETE deactivates.
    """
    queryset = User.objects.select_related('manager', 'hod', 'org_unit')
    permission_classes = [IsAdminOrReadOnly]
    filterset_class = UserFilter
    ordering_fields = ['name', 'email', 'role', 'date_joined']
    ordering = ['name']

    def get_serializer_class(self):
        if self.action == 'create':
            return UserCreateSerializer
        return UserSerializer

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError('You cannot deactivate your own account')
        instance.deactivate()
        logger.info('User %s deactivated by %s', instance.id, self.request.user.id)
