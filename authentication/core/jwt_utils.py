from rest_framework_simplejwt.tokens import RefreshToken, TokenError
from datetime import datetime, timedelta
from django.conf import settings
from django.core.cache import cache
import jwt
import logging
import uuid
import time

logger = logging.getLogger(__name__)


class TokenManager:
    """JWT token manager with a cache-backed blacklist, keyed by user UUID"""

    BLACKLIST_KEY = "blacklisted_token:{jti}"
    USER_TOKENS_KEY = "user_tokens:{user_uuid}"

    @staticmethod
    def _role_claims(user):
        restaurant = user.owned_restaurant if user.is_restaurant_owner else None
        return {
            'email': user.email,
            'role': user.role,
            'role_level': user.role_level,
            'restaurant_id': restaurant.pk if restaurant else None,
            'user_uuid': str(user.uuid),
        }

    @staticmethod
    def generate_tokens(user):
        """Issue an access/refresh pair carrying the caller's role claims"""
        try:
            refresh = RefreshToken.for_user(user)

            jti = str(uuid.uuid4())
            refresh['jti'] = jti
            refresh['type'] = 'refresh'
            for claim, value in TokenManager._role_claims(user).items():
                refresh[claim] = value

            access_token = refresh.access_token
            access_token['type'] = 'access'
            access_token['jti'] = str(uuid.uuid4())

            access_expiry = settings.SIMPLE_JWT.get('ACCESS_TOKEN_LIFETIME', timedelta(hours=24))
            refresh_expiry = settings.SIMPLE_JWT.get('REFRESH_TOKEN_LIFETIME', timedelta(days=30))

            TokenManager._store_token_metadata(str(user.uuid), jti, refresh_expiry.total_seconds())

            return {
                'access_token': str(access_token),
                'refresh_token': str(refresh),
                'token_type': 'Bearer',
                'expires_in': int(access_expiry.total_seconds()),
                'refresh_expires_in': int(refresh_expiry.total_seconds()),
                'user_uuid': str(user.uuid),
                'issued_at': int(time.time())
            }

        except Exception as e:
            logger.error(f"Failed to generate tokens for user {user.email}: {str(e)}")
            raise

    @staticmethod
    def refresh_tokens(refresh_token):
        """Validate a refresh token and rotate it into a fresh pair"""
        from authentication.models import CustomUser

        token = RefreshToken(refresh_token)
        jti = token.get('jti')

        if not jti or TokenManager.is_token_blacklisted(jti):
            logger.warning(f"Attempt to use blacklisted token with JTI: {jti}")
            raise TokenError("Token is blacklisted")

        user_uuid = token.get('user_uuid')
        if not user_uuid:
            raise TokenError("Invalid token payload: missing user_uuid")

        try:
            user = CustomUser.objects.get(uuid=user_uuid)
        except CustomUser.DoesNotExist:
            logger.warning(f"Token refresh attempted for non-existent user UUID: {user_uuid}")
            raise TokenError("Invalid token")

        if not user.is_active:
            logger.warning(f"Token refresh attempted for inactive user: {user.email}")
            TokenManager.blacklist_token(jti)
            raise TokenError("User is inactive")

        if settings.SIMPLE_JWT.get('ROTATE_REFRESH_TOKENS', True):
            TokenManager.blacklist_token(jti)

        return TokenManager.generate_tokens(user)

    @staticmethod
    def validate_token(token_string):
        """Validate token without database lookup. Returns (valid, user_uuid, token_type)."""
        try:
            decoded = jwt.decode(
                token_string,
                settings.SIMPLE_JWT.get('SIGNING_KEY', settings.SECRET_KEY),
                algorithms=[settings.SIMPLE_JWT.get('ALGORITHM', 'HS256')],
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token expired")
            return False, None, None
        except jwt.PyJWTError as e:
            logger.debug(f"Token validation error: {str(e)}")
            return False, None, None

        jti = decoded.get('jti')
        if jti and TokenManager.is_token_blacklisted(jti):
            logger.warning(f"Attempt to use blacklisted token with JTI: {jti}")
            return False, None, None

        token_type = decoded.get('token_type', decoded.get('type', 'access'))
        logger.debug(f"Token valid until {datetime.fromtimestamp(decoded.get('exp', 0)).isoformat()}")
        return True, decoded.get('user_uuid'), token_type

    @staticmethod
    def blacklist_token(jti):
        """Blacklist a token by JTI"""
        if not jti:
            return False
        timeout = settings.SIMPLE_JWT.get('BLACKLIST_TIMEOUT', 86400)
        cache.set(TokenManager.BLACKLIST_KEY.format(jti=jti), True, timeout=timeout)
        return True

    @staticmethod
    def is_token_blacklisted(jti):
        if not jti:
            return False
        return bool(cache.get(TokenManager.BLACKLIST_KEY.format(jti=jti)))

    @staticmethod
    def _store_token_metadata(user_uuid, jti, expiry_seconds):
        """Remember issued refresh JTIs so they can all be revoked at once"""
        key = TokenManager.USER_TOKENS_KEY.format(user_uuid=user_uuid)
        active = set(cache.get(key, []))
        active.add(jti)
        cache.set(key, sorted(active), timeout=int(expiry_seconds))

    @staticmethod
    def blacklist_all_user_tokens(user_uuid):
        """Blacklist every refresh token issued to a user"""
        key = TokenManager.USER_TOKENS_KEY.format(user_uuid=user_uuid)
        active_tokens = cache.get(key, [])
        for jti in active_tokens:
            TokenManager.blacklist_token(jti)
        cache.delete(key)
        logger.info(f"Blacklisted {len(active_tokens)} tokens for user {user_uuid}")
        return len(active_tokens)
