"""
Authentication Models - Custom User Model with KPI roles
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone


class UserManager(BaseUserManager):
    """Custom user manager"""
    
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            # Login is by email domain; accounts created that way have no password.
            user.set_unusable_password()
        user.save(using=self._db)
        return user
    
    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.Role.ADMIN)
        
        return self.create_user(email, password, **extra_fields)

    def active(self):
        return self.filter(status=User.Status.ACTIVE)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Organisation actor. ``manager`` is the default level-1 approver and
    ``hod`` the preferred level-2 approver for this user's submissions.
    """

    class Role(models.TextChoices):
        STAFF = 'STAFF', 'Staff'
        LINE_MANAGER = 'LINE_MANAGER', 'Line Manager'
        MANAGER = 'MANAGER', 'Manager / HOD'
        ADMIN = 'ADMIN', 'Admin'

    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        INACTIVE = 'INACTIVE', 'Inactive'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    
    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=150)
    employee_id = models.CharField(max_length=50, blank=True, db_index=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STAFF, db_index=True)
    department = models.CharField(max_length=100, blank=True, db_index=True)
    org_unit = models.ForeignKey(
        'organization.OrgUnit',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='members',
    )
    manager = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='direct_reports',
    )
    hod = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='hod_reports',
        help_text='Head of department approving at level 2',
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()
    
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']
    
    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['name']
        indexes = [
            models.Index(fields=['role', 'status']),
            models.Index(fields=['department', 'role', 'status']),
        ]
    
    def __str__(self):
        return f"{self.name} <{self.email}>"

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    @property
    def is_admin_role(self):
        return self.is_superuser or self.role == self.Role.ADMIN

    def has_role(self, *roles):
        return self.role in roles

    def deactivate(self):
        self.status = self.Status.INACTIVE
        self.save(update_fields=['status', 'updated_at'])
