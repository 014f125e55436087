from decimal import Decimal

from rest_framework import serializers

from authentication.serializers import DeliveryPersonSerializer
from restaurants.serializers import RestaurantSummarySerializer

from .models import Order, OrderItem, Review

PAYMENT_METHOD_INPUTS = ('CASH', 'CARD', 'UPI', 'WALLET')
MAX_LINE_QUANTITY = 100


# ------------------------------------------------------
# READ SERIALIZERS
# ------------------------------------------------------
class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_id = serializers.IntegerField(source='menu_item.id', read_only=True, default=None)
    line_total = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'menu_item_id', 'name', 'quantity', 'price', 'line_total']


class CustomerSummarySerializer(serializers.Serializer):
    uuid = serializers.UUIDField()
    email = serializers.EmailField()
    full_name = serializers.CharField()


def _ratings_block(obj):
    return {
        'restaurant': {
            'rating': obj.restaurant_rating,
            'comment': obj.restaurant_comment,
            'rated_at': obj.restaurant_rated_at,
        } if obj.restaurant_rating else None,
        'delivery': {
            'rating': obj.delivery_rating,
            'comment': obj.delivery_comment,
            'rated_at': obj.delivery_rated_at,
        } if obj.delivery_rating else None,
    }


class OrderSerializer(serializers.ModelSerializer):
    customer = CustomerSummarySerializer(read_only=True)
    restaurant = RestaurantSummarySerializer(read_only=True)
    delivery_person = DeliveryPersonSerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    ratings = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'order_id', 'order_number', 'batch_number',
            'customer', 'restaurant', 'delivery_person', 'items',
            'subtotal', 'delivery_fee', 'tax', 'discount', 'total_amount',
            'status', 'payment_method', 'payment_status',
            'delivery_address', 'phone_number', 'notes', 'estimated_delivery_time',
            'order_timeline', 'batch_tracking', 'ratings',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_ratings(self, obj):
        return _ratings_block(obj)


class BatchLookupSerializer(serializers.ModelSerializer):
    """Public tracking view; carries no customer data."""
    restaurant = RestaurantSummarySerializer(read_only=True)
    delivery_person = DeliveryPersonSerializer(read_only=True)
    items = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'batch_number', 'order_number', 'status', 'restaurant', 'delivery_person',
            'items', 'order_timeline', 'batch_tracking', 'estimated_delivery_time', 'created_at',
        ]
        read_only_fields = fields

    def get_items(self, obj):
        return [{'name': item.name, 'quantity': item.quantity} for item in obj.items.all()]


class ReviewSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(source='order.order_id', read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    restaurant_id = serializers.IntegerField(source='restaurant.id', read_only=True, default=None)
    delivery_person_id = serializers.UUIDField(source='delivery_person.uuid', read_only=True, default=None)

    class Meta:
        model = Review
        fields = [
            'id', 'order_id', 'batch_number', 'order_number', 'total_amount',
            'customer_name', 'restaurant_id', 'delivery_person_id',
            'restaurant_rating', 'restaurant_comment', 'restaurant_rated_at',
            'delivery_rating', 'delivery_comment', 'delivery_rated_at',
            'is_verified', 'is_published', 'is_flagged', 'flag_reason',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


# ------------------------------------------------------
# WRITE SERIALIZERS
# ------------------------------------------------------
class OrderItemInputSerializer(serializers.Serializer):
    menu_item_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_LINE_QUANTITY)


class OrderCreateSerializer(serializers.Serializer):
    restaurant_id = serializers.IntegerField()
    address_id = serializers.IntegerField()
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(help_text="CASH, CARD, UPI or WALLET")
    delivery_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    tax = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True,
        help_text="Omit to apply the configured tax rate to the subtotal"
    )
    discount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    special_instructions = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')
    customer_id = serializers.UUIDField(required=False, help_text="Admins only: place the order for this customer")

    def validate_payment_method(self, value):
        value = value.strip().upper()
        if value not in PAYMENT_METHOD_INPUTS:
            raise serializers.ValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHOD_INPUTS)}.")
        return value


class BatchTrackingSerializer(serializers.Serializer):
    prepared_by = serializers.CharField(max_length=150, required=False, allow_blank=True)
    prepared_at = serializers.DateTimeField(required=False)
    food_temperature = serializers.FloatField(required=False)
    handover_temperature = serializers.FloatField(required=False)
    handover_time = serializers.DateTimeField(required=False)
    quality_check = serializers.BooleanField(required=False)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class OrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices, required=False)
    batch_tracking = BatchTrackingSerializer(required=False)

    def validate(self, attrs):
        if not attrs.get('status') and not attrs.get('batch_tracking'):
            raise serializers.ValidationError("Provide a status and/or batch_tracking fields to update.")
        return attrs


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)


class DeliveryAssignSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class DeliveryStatusUpdateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=Order.Status.choices)


class RatingSubmitSerializer(serializers.Serializer):
    """
    Accepts either explicit restaurant/delivery fields or the single
    rating_type + rating + comment form. Output is always the explicit form.
    """
    restaurant_rating = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)
    restaurant_comment = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    delivery_rating = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)
    delivery_comment = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    rating_type = serializers.ChoiceField(choices=['restaurant', 'delivery'], required=False)
    rating = serializers.IntegerField(min_value=1, max_value=5, required=False)
    comment = serializers.CharField(max_length=1000, required=False, allow_blank=True)

    def validate(self, attrs):
        rating_type = attrs.pop('rating_type', None)
        rating = attrs.pop('rating', None)
        comment = attrs.pop('comment', None)

        if rating_type:
            if rating is None:
                raise serializers.ValidationError({'rating': "A rating is required when rating_type is given."})
            attrs[f'{rating_type}_rating'] = rating
            if comment is not None:
                attrs[f'{rating_type}_comment'] = comment

        if attrs.get('restaurant_rating') is None and attrs.get('delivery_rating') is None:
            raise serializers.ValidationError("At least one rating (restaurant or delivery) is required.")
        return attrs


class ReviewModerationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = ['is_flagged', 'flag_reason', 'is_published']
