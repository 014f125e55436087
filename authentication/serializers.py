from rest_framework import serializers
from .models import CustomUser


# ------------------------------------------------------
# BASE USER SERIALIZER
# ------------------------------------------------------
class UserBaseSerializer(serializers.ModelSerializer):
    role_level = serializers.IntegerField(read_only=True)
    restaurant_id = serializers.SerializerMethodField()

    class Meta:
        model = CustomUser
        fields = [
            'uuid',
            'email',
            'full_name',
            'phone_number',
            'role',
            'role_level',
            'restaurant_id',
            'vehicle_type',
            'vehicle_number',
            'is_available',
            'created_at',
        ]
        read_only_fields = ['uuid', 'email', 'role', 'created_at']

    def get_restaurant_id(self, obj):
        restaurant = obj.owned_restaurant
        return restaurant.pk if restaurant else None


class DeliveryPersonSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomUser
        fields = ['uuid', 'full_name', 'phone_number', 'vehicle_type', 'vehicle_number']


# ------------------------------------------------------
# TOKEN SERIALIZERS
# ------------------------------------------------------
class TokenSerializer(serializers.Serializer):
    access_token = serializers.CharField(help_text="JWT access token for API requests")
    refresh_token = serializers.CharField(help_text="JWT refresh token for obtaining new access tokens")
    expires_in = serializers.IntegerField(help_text="Access token lifetime in seconds")
    refresh_expires_in = serializers.IntegerField(help_text="Refresh token lifetime in seconds")


class AuthDataSerializer(serializers.Serializer):
    user = UserBaseSerializer(help_text="User profile information")
    tokens = TokenSerializer(help_text="JWT tokens for authentication")


class AuthResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    data = AuthDataSerializer(required=False)
    error = serializers.CharField(required=False)


# ------------------------------------------------------
# AUTH SERIALIZERS
# ------------------------------------------------------
SELF_SERVICE_ROLES = [
    (CustomUser.Role.CUSTOMER, 'Customer'),
    (CustomUser.Role.RESTAURANT_OWNER, 'Restaurant Owner'),
    (CustomUser.Role.DELIVERY_GUY, 'Delivery Guy'),
]


class UserRegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField(help_text="User email address")
    password = serializers.CharField(write_only=True, min_length=8, help_text="User password (minimum 8 characters)")
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=15)
    full_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    role = serializers.ChoiceField(
        choices=SELF_SERVICE_ROLES,
        default=CustomUser.Role.CUSTOMER,
        help_text="CUSTOMER, RESTAURANT_OWNER or DELIVERY_GUY (email domain must match the role)"
    )
    vehicle_type = serializers.CharField(required=False, allow_blank=True, max_length=30)
    vehicle_number = serializers.CharField(required=False, allow_blank=True, max_length=30)


class UserLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class TokenRefreshRequestSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()
