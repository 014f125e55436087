import logging

from rest_framework_simplejwt.authentication import JWTAuthentication

from .exceptions import InvalidTokenException
from .jwt_utils import TokenManager

logger = logging.getLogger(__name__)


class BlacklistAwareJWTAuthentication(JWTAuthentication):
    """simplejwt authentication that also rejects tokens revoked on logout."""

    def get_validated_token(self, raw_token):
        validated = super().get_validated_token(raw_token)
        jti = validated.get('jti')
        if jti and TokenManager.is_token_blacklisted(jti):
            logger.warning(f"Rejected blacklisted access token with JTI: {jti}")
            raise InvalidTokenException()
        return validated
