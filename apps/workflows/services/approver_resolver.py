"""Approver resolution for each approval level"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model

logger = logging.getLogger(__name__)


class ApproverResolver:
    """
    Pick the user who decides an approval at a given level.

    Level 1: the owner's manager, then a line manager of the same
    department, then any line manager, then any admin.
    Level 2: the owner's HOD, then a manager of the same department, then
    the configured general HOD. ``None`` at level 2 means the level-1
    decision is final.
    """

    @staticmethod
    def _active():
        User = get_user_model()
        return User.objects.active().order_by('date_joined', 'email')

    @classmethod
    def resolve(cls, *, level: int, owner) -> Optional['settings.AUTH_USER_MODEL']:
        if level <= 1:
            return cls.level_one(owner)
        return cls.level_two(owner)

    @classmethod
    def level_one(cls, owner):
        User = get_user_model()
        manager = owner.manager
        if manager is not None and manager.is_active and manager.pk != owner.pk:
            return manager

        candidates = cls._active().filter(role=User.Role.LINE_MANAGER).exclude(pk=owner.pk)
        if owner.department:
            same_department = candidates.filter(department__iexact=owner.department).first()
            if same_department:
                return same_department
        fallback = candidates.first()
        if fallback:
            return fallback

        admin = cls._active().filter(role=User.Role.ADMIN).exclude(pk=owner.pk).first()
        if admin is None:
            logger.warning("No level-1 approver available for %s", owner.email)
        return admin

    @classmethod
    def level_two(cls, owner):
        User = get_user_model()
        hod = owner.hod
        if hod is not None and hod.is_active and hod.pk != owner.pk:
            return hod

        managers = cls._active().filter(role=User.Role.MANAGER).exclude(pk=owner.pk)
        if owner.department:
            same_department = managers.filter(department__iexact=owner.department).first()
            if same_department:
                return same_department

        general_email = getattr(settings, 'KPI_GENERAL_HOD_EMAIL', '')
        if general_email:
            return managers.filter(email__iexact=general_email).first()
        return None
