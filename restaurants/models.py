from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from authentication.models import CustomUser


# ==========================================
# Restaurant
# ==========================================
class Restaurant(models.Model):
    owner = models.OneToOneField(
        CustomUser,
        on_delete=models.CASCADE,
        related_name='restaurant',
        limit_choices_to={'role': CustomUser.Role.RESTAURANT_OWNER},
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    rating = models.DecimalField(
        max_digits=3, decimal_places=2, default=Decimal('0.00'),
        help_text='Average restaurant rating from published reviews'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


# ==========================================
# Menu Item
# ==========================================
class MenuItem(models.Model):
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='menu_items')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    category = models.CharField(max_length=100, blank=True)
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['restaurant', 'name']
        indexes = [
            models.Index(fields=['restaurant', 'is_available'], name='menuitem_restaurant_avail_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.restaurant.name})"


# ==========================================
# Delivery Address
# ==========================================
class Address(models.Model):
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='addresses')
    label = models.CharField(max_length=50, blank=True, help_text='e.g. Home, Work')
    street = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Addresses"
        ordering = ['-is_default', '-created_at']

    @property
    def full_address(self):
        parts = [self.street, self.city, self.state, self.postal_code]
        return ", ".join(part for part in parts if part)

    def __str__(self):
        return f"{self.label or 'Address'}: {self.full_address}"
