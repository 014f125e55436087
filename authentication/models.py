import uuid

from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.utils import timezone


# =====================================================
# USER MANAGER
# =====================================================
class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The email field must be set')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', CustomUser.Role.ADMIN)

        return self.create_user(email, password, **extra_fields)


# =====================================================
# USER MODEL
# =====================================================
class CustomUser(AbstractBaseUser, PermissionsMixin):
    class Role(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        RESTAURANT_OWNER = 'RESTAURANT_OWNER', 'Restaurant Owner'
        DELIVERY_GUY = 'DELIVERY_GUY', 'Delivery Guy'
        CUSTOMER = 'CUSTOMER', 'Customer'

    # Core fields
    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=150, blank=True)
    phone_number = models.CharField(max_length=15, blank=True, null=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CUSTOMER)

    # Delivery profile (only meaningful for DELIVERY_GUY)
    vehicle_type = models.CharField(max_length=30, blank=True, null=True)
    vehicle_number = models.CharField(max_length=30, blank=True, null=True)
    is_available = models.BooleanField(default=True)

    # System fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    # Manager
    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def role_level(self):
        from authentication.core.rbac import ROLE_LEVELS
        return ROLE_LEVELS[self.Role(self.role)]

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    @property
    def is_restaurant_owner(self):
        return self.role == self.Role.RESTAURANT_OWNER

    @property
    def is_delivery_guy(self):
        return self.role == self.Role.DELIVERY_GUY

    @property
    def is_customer(self):
        return self.role == self.Role.CUSTOMER

    @property
    def owned_restaurant(self):
        """The restaurant this owner runs, or None."""
        return getattr(self, 'restaurant', None)
