import logging

from celery import shared_task

from .models import Order, OrderAuditLog

logger = logging.getLogger(__name__)


@shared_task(name="orders.record_order_audit", ignore_result=True)
def record_order_audit(order_pk, to_status, from_status='', actor_pk=None, message=''):
    """Persist one status change to the order's audit trail."""
    if not Order.objects.filter(pk=order_pk).exists():
        logger.warning(f"Skipping audit entry for missing order {order_pk}")
        return

    OrderAuditLog.objects.create(
        order_id=order_pk,
        actor_id=actor_pk,
        from_status=from_status or '',
        to_status=to_status,
        message=message,
    )
    logger.info(f"Audit: order {order_pk} {from_status or '-'} -> {to_status} (actor={actor_pk})")
