import logging
from dataclasses import asdict

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema

from authentication.core.base_view import BaseAPIView
from authentication.core.permissions import IsAdmin
from authentication.core.rbac_log import get_rbac_log
from authentication.core.response import standardized_response

logger = logging.getLogger(__name__)

RBAC_LOG_ACTIONS = ('logs', 'stats', 'denials', 'suspicious', 'export')


def _parse_bool(value):
    if value is None:
        return None
    return value.lower() in ('1', 'true', 'yes')


class RbacLogView(BaseAPIView):
    """Admin view over the in-memory permission decision log."""
    permission_classes = [IsAdmin]

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('action', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=list(RBAC_LOG_ACTIONS)),
        openapi.Parameter('user_id', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        openapi.Parameter('role', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        openapi.Parameter('resource', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        openapi.Parameter('allowed', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
        openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
    ])
    def get(self, request):
        rbac_log = get_rbac_log()
        action = request.query_params.get('action', 'logs')
        try:
            limit = int(request.query_params.get('limit', 100))
        except ValueError:
            limit = 100

        if action == 'logs':
            entries = rbac_log.query(
                user_id=request.query_params.get('user_id'),
                role=request.query_params.get('role'),
                resource=request.query_params.get('resource'),
                allowed=_parse_bool(request.query_params.get('allowed')),
                limit=limit,
            )
            data = {'logs': [asdict(e) for e in entries], 'count': len(entries)}
        elif action == 'stats':
            data = rbac_log.stats()
        elif action == 'denials':
            entries = rbac_log.recent_denials(limit=limit)
            data = {'denials': [asdict(e) for e in entries], 'count': len(entries)}
        elif action == 'suspicious':
            threshold = request.query_params.get('threshold')
            data = rbac_log.suspicious_activity(int(threshold) if threshold and threshold.isdigit() else None)
        elif action == 'export':
            response = HttpResponse(rbac_log.export(), content_type='application/json')
            filename = f"rbac-logs-{timezone.now():%Y%m%d%H%M%S}.json"
            response['Content-Disposition'] = f'attachment; filename="{filename}"'
            return response
        else:
            return Response(
                standardized_response(
                    success=False,
                    error=f"Unknown action '{action}'. Use one of: {', '.join(RBAC_LOG_ACTIONS)}",
                    error_code='validation_error',
                ),
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(standardized_response(data=data), status=status.HTTP_200_OK)

    def delete(self, request):
        get_rbac_log().clear()
        logger.info(f"RBAC decision log cleared by {request.user.email}")
        return Response(standardized_response(message="RBAC logs cleared"), status=status.HTTP_200_OK)
