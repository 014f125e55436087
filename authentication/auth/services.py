import logging

from django.core.cache import cache
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from rest_framework_simplejwt.tokens import RefreshToken, TokenError

from authentication.serializers import UserBaseSerializer
from authentication.core.jwt_utils import TokenManager
from authentication.core.ip_utils import get_client_ip
from authentication.core.rbac import validate_email_for_role
from authentication.models import CustomUser

logger = logging.getLogger(__name__)

MAX_FAILED_LOGINS = 5
LOCKOUT_SECONDS = 900


class AuthenticationService:
    """Service class to handle authentication-related business logic"""

    @staticmethod
    def register(email, password, role=CustomUser.Role.CUSTOMER, phone_number=None, full_name=None,
                 vehicle_type=None, vehicle_number=None, request=None):
        """Create an account for a self-service role and issue tokens"""
        if request is not None:
            logger.info(f"Registration attempt from IP: {get_client_ip(request)}")

        valid, message = validate_email_for_role(email, role)
        if not valid:
            logger.warning(f"Registration rejected for {email} as {role}: {message}")
            return False, {"success": False, "error": message, "error_code": "invalid_email_domain"}, 400

        if CustomUser.objects.filter(email__iexact=email).exists():
            return False, {"success": False, "error": "A user with this email already exists"}, 400

        try:
            validate_password(password)
        except ValidationError as e:
            return False, {"success": False, "error": ", ".join(e.messages)}, 400

        with transaction.atomic():
            user = CustomUser.objects.create_user(
                email=email,
                password=password,
                role=role,
                full_name=full_name or '',
                phone_number=phone_number or None,
            )
            if role == CustomUser.Role.DELIVERY_GUY:
                user.vehicle_type = vehicle_type or None
                user.vehicle_number = vehicle_number or None
                user.save(update_fields=['vehicle_type', 'vehicle_number'])

        tokens = TokenManager.generate_tokens(user)
        logger.info(f"Registration successful for user: {user.email} ({user.role})")

        return True, {
            "success": True,
            "data": {
                'user': UserBaseSerializer(user).data,
                'tokens': tokens,
            }
        }, 201

    @staticmethod
    def login(email, password, request=None):
        """Handle user login with email and password"""
        if not email or not password:
            return False, {"success": False, "error": "Email and password are required."}, 400

        if request is not None:
            logger.info(f"Login attempt from IP: {get_client_ip(request)}")

        if cache.get(f"account_lockout:{email}"):
            logger.warning(f"Login attempt for locked account: {email}")
            return False, {
                "success": False,
                "error": "Account temporarily locked due to multiple failed attempts. Try again later.",
                "error_code": "account_locked",
            }, 403

        user = authenticate(username=email, password=password)
        if not user:
            failed_attempts = cache.get(f"failed_logins:{email}", 0) + 1
            cache.set(f"failed_logins:{email}", failed_attempts, timeout=1800)

            if failed_attempts >= MAX_FAILED_LOGINS:
                cache.set(f"account_lockout:{email}", True, timeout=LOCKOUT_SECONDS)
                logger.warning(f"Account locked due to failed attempts: {email}")

            logger.warning(f"Failed login attempt for email: {email}")
            return False, {"success": False, "error": "Invalid email or password"}, 401

        cache.delete(f"failed_logins:{email}")
        tokens = TokenManager.generate_tokens(user)
        logger.info(f"Login successful for user: {user.email}")

        return True, {
            "success": True,
            "data": {
                'user': UserBaseSerializer(user).data,
                'tokens': tokens,
            }
        }, 200

    @staticmethod
    def refresh_token(refresh_token):
        """Rotate a refresh token into a new token pair"""
        if not refresh_token:
            return False, {"success": False, "error": "Refresh token is required"}, 400

        try:
            tokens = TokenManager.refresh_tokens(refresh_token)
        except TokenError as e:
            logger.warning(f"Token refresh rejected: {str(e)}")
            return False, {"success": False, "error": "Invalid or expired refresh token", "error_code": "invalid_token"}, 401

        return True, {"success": True, "data": tokens}, 200

    @staticmethod
    def logout(user, refresh_token=None, access_jti=None):
        """Blacklist the supplied refresh token (or all of the user's tokens) and the current access token"""
        blacklisted_count = 0

        if refresh_token:
            try:
                jti = RefreshToken(refresh_token).get('jti')
            except TokenError as e:
                logger.warning(f"Ignoring invalid refresh token during logout: {str(e)}")
                jti = None
            if jti and TokenManager.blacklist_token(jti):
                blacklisted_count += 1
        else:
            blacklisted_count = TokenManager.blacklist_all_user_tokens(str(user.uuid))

        if access_jti and TokenManager.blacklist_token(access_jti):
            blacklisted_count += 1

        logger.info(f"User logged out: {user.pk} ({blacklisted_count} token(s) blacklisted)")
        return True, {
            "success": True,
            "message": "Successfully logged out",
            "data": {"tokens_blacklisted": blacklisted_count}
        }, 200
