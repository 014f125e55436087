from rest_framework import serializers

from .models import Restaurant, MenuItem, Address


class MenuItemSerializer(serializers.ModelSerializer):
    restaurant_id = serializers.IntegerField(source='restaurant.id', read_only=True)

    class Meta:
        model = MenuItem
        fields = ['id', 'restaurant_id', 'name', 'description', 'price', 'category', 'is_available']
        read_only_fields = ['id', 'restaurant_id']

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative.")
        return value


class RestaurantSerializer(serializers.ModelSerializer):
    class Meta:
        model = Restaurant
        fields = ['id', 'name', 'description', 'phone_number', 'address', 'city', 'rating', 'is_active']
        read_only_fields = ['id', 'rating']


class RestaurantSummarySerializer(serializers.ModelSerializer):
    """Compact form embedded in order payloads."""

    class Meta:
        model = Restaurant
        fields = ['id', 'name', 'phone_number', 'address']


class AddressSerializer(serializers.ModelSerializer):
    full_address = serializers.CharField(read_only=True)

    class Meta:
        model = Address
        fields = [
            'id', 'label', 'street', 'city', 'state', 'postal_code',
            'phone_number', 'is_default', 'full_address', 'created_at'
        ]
        read_only_fields = ['id', 'full_address', 'created_at']
