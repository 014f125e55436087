import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.throttling import AnonRateThrottle
from drf_yasg.utils import swagger_auto_schema

from authentication.core.base_view import BaseAPIView
from authentication.core.response import standardized_response
from authentication.serializers import (
    UserBaseSerializer,
    UserRegistrationSerializer,
    UserLoginSerializer,
    TokenRefreshRequestSerializer,
    AuthResponseSerializer,
)
from .services import AuthenticationService

logger = logging.getLogger(__name__)


class UserRegistrationView(BaseAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AnonRateThrottle]

    @swagger_auto_schema(
        request_body=UserRegistrationSerializer,
        responses={201: AuthResponseSerializer, 400: AuthResponseSerializer}
    )
    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        success, response_data, status_code = AuthenticationService.register(
            request=request,
            **serializer.validated_data
        )
        return Response(standardized_response(**response_data), status=status_code)


class UserLoginView(BaseAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AnonRateThrottle]

    @swagger_auto_schema(
        request_body=UserLoginSerializer,
        responses={200: AuthResponseSerializer, 401: AuthResponseSerializer}
    )
    def post(self, request):
        serializer = UserLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        success, response_data, status_code = AuthenticationService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            request=request
        )
        return Response(standardized_response(**response_data), status=status_code)


class TokenRefreshView(BaseAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @swagger_auto_schema(request_body=TokenRefreshRequestSerializer)
    def post(self, request):
        success, response_data, status_code = AuthenticationService.refresh_token(
            request.data.get('refresh_token')
        )
        return Response(standardized_response(**response_data), status=status_code)


class LogoutView(BaseAPIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=TokenRefreshRequestSerializer)
    def post(self, request):
        access_jti = request.auth.get('jti') if request.auth is not None else None
        success, response_data, status_code = AuthenticationService.logout(
            request.user,
            refresh_token=request.data.get('refresh_token'),
            access_jti=access_jti,
        )
        return Response(standardized_response(**response_data), status=status_code)


class MeView(BaseAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(
            standardized_response(data=UserBaseSerializer(request.user).data),
            status=status.HTTP_200_OK
        )
