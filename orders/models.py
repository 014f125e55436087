import uuid
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone

from authentication.models import CustomUser
from restaurants.models import Restaurant, MenuItem

RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


# ========================
# ORDER
# ========================
class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        PREPARING = 'preparing', 'Preparing'
        READY = 'ready', 'Ready'
        PICKED_BY_DELIVERY = 'picked_by_delivery', 'Picked by Delivery'
        OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'

    class PaymentMethod(models.TextChoices):
        CASH = 'cash', 'Cash'
        CARD = 'card', 'Card'
        ONLINE = 'online', 'Online'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    order_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True, help_text='Public order reference ID')
    order_number = models.CharField(max_length=32, unique=True, help_text='Human-readable order number')
    batch_number = models.CharField(max_length=32, unique=True, help_text='Traceability code shared with the customer')

    customer = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='orders')
    restaurant = models.ForeignKey(Restaurant, on_delete=models.PROTECT, related_name='orders')
    delivery_person = models.ForeignKey(
        CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='deliveries'
    )

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Amounts are fixed at creation
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    delivery_address = models.TextField()
    phone_number = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    estimated_delivery_time = models.DateTimeField(null=True, blank=True)

    order_timeline = models.JSONField(
        default=dict, blank=True, encoder=DjangoJSONEncoder,
        help_text='Status name mapped to the time it was first reached'
    )
    batch_tracking = models.JSONField(
        default=dict, blank=True, encoder=DjangoJSONEncoder,
        help_text='Staff-entered preparation and handover quality data'
    )

    restaurant_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    restaurant_comment = models.TextField(blank=True)
    restaurant_rated_at = models.DateTimeField(null=True, blank=True)
    delivery_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    delivery_comment = models.TextField(blank=True)
    delivery_rated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='order_status_idx'),
            models.Index(fields=['-created_at'], name='order_created_idx'),
            models.Index(fields=['restaurant', 'status'], name='order_restaurant_status_idx'),
            models.Index(fields=['delivery_person', 'status'], name='order_delivery_status_idx'),
        ]

    RATING_FIELDS = (
        'restaurant_rating', 'restaurant_comment', 'restaurant_rated_at',
        'delivery_rating', 'delivery_comment', 'delivery_rated_at',
    )

    @property
    def is_closed(self):
        return self.status in (self.Status.DELIVERED, self.Status.CANCELLED)

    def stamp_timeline(self, status, at=None):
        """Record when `status` was first reached. Existing stamps are kept."""
        if not self.order_timeline.get(status):
            self.order_timeline[status] = (at or timezone.now()).isoformat()

    def apply_status(self, status, at=None):
        """Set the status and its side effects. Legality is checked by the caller."""
        self.status = status
        self.stamp_timeline(status, at)
        if status == self.Status.DELIVERED and self.payment_method == self.PaymentMethod.CASH:
            self.payment_status = self.PaymentStatus.COMPLETED

    def clear_ratings(self):
        self.restaurant_rating = None
        self.restaurant_comment = ''
        self.restaurant_rated_at = None
        self.delivery_rating = None
        self.delivery_comment = ''
        self.delivery_rated_at = None

    def __str__(self):
        return f"Order {self.order_number} [{self.batch_number}] ({self.status})"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))],
        help_text='Unit price at the time of ordering'
    )

    @property
    def line_total(self):
        return self.price * self.quantity

    def __str__(self):
        return f"{self.name} x {self.quantity}"


# ========================
# REVIEWS
# ========================
class Review(models.Model):
    customer = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='reviews')
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='reviews')

    # Copied from the order when the review is first created
    restaurant = models.ForeignKey(Restaurant, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviews')
    delivery_person = models.ForeignKey(
        CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='delivery_reviews'
    )
    batch_number = models.CharField(max_length=32)
    order_number = models.CharField(max_length=32, blank=True)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    restaurant_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    restaurant_comment = models.TextField(blank=True)
    restaurant_rated_at = models.DateTimeField(null=True, blank=True)
    delivery_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    delivery_comment = models.TextField(blank=True)
    delivery_rated_at = models.DateTimeField(null=True, blank=True)

    # Moderation
    is_verified = models.BooleanField(default=True)
    is_published = models.BooleanField(default=True)
    is_flagged = models.BooleanField(default=False)
    flag_reason = models.CharField(max_length=255, blank=True)
    moderated_by = models.ForeignKey(
        CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='moderated_reviews'
    )
    moderated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['customer', 'order'], name='unique_customer_order_review'),
        ]
        indexes = [
            models.Index(fields=['restaurant', 'is_published'], name='review_restaurant_pub_idx'),
            models.Index(fields=['is_flagged'], name='review_flagged_idx'),
        ]

    def __str__(self):
        return f"Review by {self.customer.email} for {self.batch_number}"


# ========================
# AUDIT TRAIL
# ========================
class OrderAuditLog(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='audit_logs')
    actor = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_actions')
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.order_id}: {self.from_status or '-'} -> {self.to_status}"
