from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import APIException


class InvalidTokenException(APIException):
    status_code = 401
    default_detail = _('Invalid or expired token')
    default_code = 'invalid_token'


class DuplicateEntry(APIException):
    status_code = 409
    default_detail = _('A record with these values already exists.')
    default_code = 'duplicate_entry'


# =====================================================
# Orders
# =====================================================

class OrderNotFound(APIException):
    status_code = 404
    default_detail = _('Order not found.')
    default_code = 'order_not_found'


class OrderAccessDenied(APIException):
    status_code = 403
    default_detail = _('You do not have access to this order.')
    default_code = 'order_access_denied'


class InvalidStatusTransition(APIException):
    status_code = 400
    default_detail = _('This status change is not allowed from the current status.')
    default_code = 'invalid_status_transition'


class StatusChangeForbidden(APIException):
    status_code = 403
    default_detail = _('Your role cannot set this order status.')
    default_code = 'status_change_forbidden'


class OrderAlreadyClosed(APIException):
    """Raised when cancelling an order that is already delivered or cancelled."""
    status_code = 400
    default_detail = _('Order is already delivered or cancelled.')
    default_code = 'order_already_closed'


class OrderAlreadyAssigned(APIException):
    status_code = 400
    default_detail = _('Order is already assigned to a delivery person.')
    default_code = 'order_already_assigned'


class ResourceNotFound(APIException):
    """Referenced restaurant, address or menu item does not exist."""
    status_code = 404
    default_detail = _('Referenced resource not found.')
    default_code = 'resource_not_found'


# =====================================================
# Reviews
# =====================================================

class OrderNotDelivered(APIException):
    status_code = 400
    default_detail = _('Only delivered orders can be rated.')
    default_code = 'order_not_delivered'


class ReviewNotFound(APIException):
    status_code = 404
    default_detail = _('No review found for this order.')
    default_code = 'review_not_found'
