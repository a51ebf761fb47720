"""Email-domain gated login with account auto-provisioning."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.authentication.models import User
from apps.core.exceptions import PermissionDeniedException, ValidationException

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security.audit')


@dataclass
class LoginResult:
    user: User
    created: bool


class LoginService:
    """Resolve (or create) the account behind a company email address."""

    @classmethod
    def login(cls, email: str, name: str | None = None) -> LoginResult:
        email = (email or '').strip().lower()
        if not email or '@' not in email:
            raise ValidationException('Email is required', field='email')

        domain = email.rsplit('@', 1)[1]
        allowed = [d.lower() for d in settings.KPI_LOGIN_EMAIL_DOMAINS]
        if domain not in allowed:
            security_logger.warning('login_rejected_domain domain=%s', domain)
            raise PermissionDeniedException(
                f"Please use your company email (@{allowed[0]})" if allowed else 'Login is disabled'
            )

        with transaction.atomic():
            user = User.objects.filter(email=email).first()
            created = False
            if user is None:
                user = cls._provision(email, name)
                created = True

        if not user.is_active:
            security_logger.warning('login_rejected_inactive user_id=%s', user.id)
            raise PermissionDeniedException('Your account is inactive. Contact your administrator.')

        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])
        return LoginResult(user=user, created=created)

    @classmethod
    def role_for_email(cls, email: str) -> str:
        local_part = email.split('@', 1)[0].lower()
        return settings.KPI_ROLE_EMAIL_PREFIXES.get(local_part, User.Role.STAFF)

    @staticmethod
    def display_name(email: str) -> str:
        local_part = email.split('@', 1)[0]
        return ' '.join(part.capitalize() for part in local_part.replace('_', '.').split('.') if part)

    @staticmethod
    def employee_id_for(email: str) -> str:
        local_part = email.split('@', 1)[0]
        initials = ''.join(part[0].upper() for part in local_part.split('.') if part)
        return f"EMP-{initials}-{secrets.randbelow(900) + 100}"

    @classmethod
    def _provision(cls, email: str, name: str | None) -> User:
        role = cls.role_for_email(email)
        user = User.objects.create_user(
            email=email,
            name=name or cls.display_name(email),
            employee_id=cls.employee_id_for(email),
            role=role,
            manager=cls._default_manager_for(role),
        )
        logger.info('Auto-provisioned user %s with role %s', user.id, role)
        return user

    @staticmethod
    def _default_manager_for(role: str):
        # STAFF report to a line manager, line managers to a manager.
        manager_role = {
            User.Role.STAFF: User.Role.LINE_MANAGER,
            User.Role.LINE_MANAGER: User.Role.MANAGER,
        }.get(role)
        if manager_role is None:
            return None
        return User.objects.active().filter(role=manager_role).order_by('date_joined').first()
