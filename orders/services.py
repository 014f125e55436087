import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import Avg, Count, Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from authentication.core.exceptions import (
    OrderAccessDenied,
    OrderAlreadyAssigned,
    OrderAlreadyClosed,
    OrderNotDelivered,
    OrderNotFound,
    ResourceNotFound,
    ReviewNotFound,
)
from authentication.core.rbac import Action, Resource, check_ownership, has_permission
from authentication.core.task_dispatch import dispatch_task
from authentication.models import CustomUser
from restaurants.models import Address, MenuItem, Restaurant

from .batch import generate_batch_number, generate_order_number
from .models import Order, OrderItem, Review
from .state_machine import OrderStatusMachine
from .tasks import record_order_audit

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
# Largest value a DecimalField(max_digits=10, decimal_places=2) money column holds.
MAX_MONEY = Decimal('99999999.99')

PAYMENT_METHOD_MAP = {
    'CASH': Order.PaymentMethod.CASH,
    'CARD': Order.PaymentMethod.CARD,
}


def to_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_order_totals(lines, delivery_fee=Decimal('0'), tax=None, discount=Decimal('0'), tax_rate=None):
    """
    Price an order from (unit_price, quantity) pairs.

    When `tax` is None it is `subtotal * tax_rate`. The total is rounded
    once, after summing, so 30.97 + 40 + 1.5485 gives 72.52 rather than summing rounded parts.
    """
    subtotal = sum((Decimal(price) * quantity for price, quantity in lines), Decimal('0'))
    delivery_fee = Decimal(delivery_fee or 0)
    discount = Decimal(discount or 0)
    if tax is None:
        rate = Decimal(str(tax_rate if tax_rate is not None else settings.ORDER_TAX_RATE))
        tax = subtotal * rate
    tax = Decimal(tax)

    total = subtotal + delivery_fee + tax - discount
    if total < 0:
        raise ValidationError({"discount": "Discount cannot exceed the order amount."})

    totals = {
        'subtotal': to_money(subtotal),
        'delivery_fee': to_money(delivery_fee),
        'tax': to_money(tax),
        'discount': to_money(discount),
        'total_amount': to_money(total),
    }
    too_large = [field for field, amount in totals.items() if amount > MAX_MONEY]
    if too_large:
        raise ValidationError({field: f"Amount exceeds the maximum of {MAX_MONEY}." for field in too_large})
    return totals


def _queue_audit(order, to_status, from_status='', actor=None, message=''):
    """Write the audit row once the surrounding transaction has committed."""
    transaction.on_commit(lambda: dispatch_task(
        record_order_audit,
        order.pk,
        to_status,
        from_status=from_status,
        actor_pk=getattr(actor, 'pk', None),
        message=message,
    ))


class OrderService:
    """Order lifecycle operations. Errors are raised as API exceptions."""

    @staticmethod
    def base_queryset():
        return (
            Order.objects
            .select_related('customer', 'restaurant', 'delivery_person')
            .prefetch_related('items')
        )

    @staticmethod
    def get_order_for_user(order_id, user):
        order = OrderService.base_queryset().filter(order_id=order_id).first()
        if order is None:
            raise OrderNotFound()
        if not check_ownership(user, order):
            logger.warning(f"User {user.email} denied access to order {order_id}")
            raise OrderAccessDenied()
        return order

    @staticmethod
    def _lock(order_id):
        order = Order.objects.select_for_update().filter(order_id=order_id).first()
        if order is None:
            raise OrderNotFound()
        return order

    # ---------------------------
    # Creation
    # ---------------------------
    @staticmethod
    def create_order(user, data):
        customer = user
        if data.get('customer_id'):
            if not user.is_admin:
                raise PermissionDenied("Only admins can place orders for another customer.")
            customer = CustomUser.objects.filter(uuid=data['customer_id'], role=CustomUser.Role.CUSTOMER).first()
            if customer is None:
                raise ResourceNotFound("Customer not found.")

        restaurant = Restaurant.objects.filter(pk=data['restaurant_id'], is_active=True).first()
        if restaurant is None:
            raise ResourceNotFound("Restaurant not found.")

        address = Address.objects.filter(pk=data['address_id'], user=customer).first()
        if address is None:
            raise ResourceNotFound("Address not found.")

        requested = data['items']
        menu = MenuItem.objects.filter(
            pk__in=[line['menu_item_id'] for line in requested],
            restaurant=restaurant,
            is_available=True,
        ).in_bulk()
        missing = [line['menu_item_id'] for line in requested if line['menu_item_id'] not in menu]
        if missing:
            raise ResourceNotFound(f"Menu item(s) not found: {', '.join(str(pk) for pk in missing)}.")

        totals = compute_order_totals(
            [(menu[line['menu_item_id']].price, line['quantity']) for line in requested],
            delivery_fee=data.get('delivery_fee'),
            tax=data.get('tax'),
            discount=data.get('discount'),
        )

        payment_method = PAYMENT_METHOD_MAP.get(data['payment_method'], Order.PaymentMethod.ONLINE)
        payment_status = (
            Order.PaymentStatus.PENDING if payment_method == Order.PaymentMethod.CASH
            else Order.PaymentStatus.COMPLETED
        )

        with transaction.atomic():
            order = Order(
                customer=customer,
                restaurant=restaurant,
                batch_number=generate_batch_number(
                    exists=lambda candidate: Order.objects.filter(batch_number=candidate).exists()
                ),
                order_number=generate_order_number(
                    exists=lambda candidate: Order.objects.filter(order_number=candidate).exists()
                ),
                payment_method=payment_method,
                payment_status=payment_status,
                delivery_address=address.full_address,
                phone_number=address.phone_number or customer.phone_number or '',
                notes=data.get('special_instructions') or '',
                **totals,
            )
            order.stamp_timeline(Order.Status.PENDING)
            order.save()

            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    menu_item=menu[line['menu_item_id']],
                    name=menu[line['menu_item_id']].name,
                    quantity=line['quantity'],
                    price=menu[line['menu_item_id']].price,
                )
                for line in requested
            ])
            _queue_audit(order, Order.Status.PENDING, actor=user, message="Order placed")

        logger.info(
            f"Order {order.order_number} ({order.batch_number}) created for {customer.email} "
            f"at restaurant {restaurant.pk}, total {order.total_amount}"
        )
        return OrderService.base_queryset().get(pk=order.pk)

    # ---------------------------
    # Status changes
    # ---------------------------
    @staticmethod
    def _transition(order, target, user, message=''):
        previous = order.status
        OrderStatusMachine.validate_transition(previous, target, user.role)
        order.apply_status(target)
        _queue_audit(order, target, from_status=previous, actor=user, message=message)
        logger.info(f"Order {order.order_number} status {previous} -> {target} by {user.email}")

    @staticmethod
    def change_status(order_id, target, user, message=''):
        with transaction.atomic():
            order = OrderService._lock(order_id)
            if not check_ownership(user, order):
                raise OrderAccessDenied()
            OrderService._transition(order, target, user, message)
            order.save(update_fields=['status', 'order_timeline', 'payment_status', 'updated_at'])
        return OrderService.base_queryset().get(pk=order.pk)

    @staticmethod
    def update_order(order_id, user, status=None, batch_tracking=None):
        """PATCH semantics: optional status change plus merge of batch tracking fields."""
        if batch_tracking and not has_permission(user.role, Resource.BATCHES, Action.UPDATE):
            raise PermissionDenied("Your role cannot edit batch tracking details.")

        with transaction.atomic():
            order = OrderService._lock(order_id)
            if not check_ownership(user, order):
                raise OrderAccessDenied()

            if status:
                OrderService._transition(order, status, user)
            if batch_tracking:
                order.batch_tracking = {**(order.batch_tracking or {}), **batch_tracking}
                logger.info(f"Batch tracking updated on {order.batch_number}: {sorted(batch_tracking)}")

            order.save(update_fields=['status', 'order_timeline', 'payment_status', 'batch_tracking', 'updated_at'])
        return OrderService.base_queryset().get(pk=order.pk)

    @staticmethod
    def cancel_order(order_id, user):
        with transaction.atomic():
            order = OrderService._lock(order_id)
            if not check_ownership(user, order):
                raise OrderAccessDenied()
            if order.is_closed:
                raise OrderAlreadyClosed(f"Order is already {order.status}.")
            OrderService._transition(order, Order.Status.CANCELLED, user, message="Order cancelled")
            order.save(update_fields=['status', 'order_timeline', 'payment_status', 'updated_at'])
        return OrderService.base_queryset().get(pk=order.pk)

    # ---------------------------
    # Delivery
    # ---------------------------
    @staticmethod
    def assign_delivery(order_id, user):
        """Claim an unassigned order for the calling delivery person."""
        with transaction.atomic():
            order = OrderService._lock(order_id)
            if order.delivery_person_id:
                raise OrderAlreadyAssigned()

            order.stamp_timeline(Order.Status.READY)
            OrderService._transition(order, Order.Status.PICKED_BY_DELIVERY, user, message="Assigned to delivery")
            order.delivery_person = user
            order.save(update_fields=[
                'delivery_person', 'status', 'order_timeline', 'payment_status', 'updated_at'
            ])
        logger.info(f"Order {order.order_number} assigned to delivery person {user.email}")
        return OrderService.base_queryset().get(pk=order.pk)

    @staticmethod
    def available_for_delivery(limit=50):
        return (
            OrderService.base_queryset()
            .filter(
                status__in=[Order.Status.CONFIRMED, Order.Status.READY],
                delivery_person__isnull=True,
            )
            .order_by('created_at')[:limit]
        )

    # ---------------------------
    # Stats
    # ---------------------------
    @staticmethod
    def restaurant_stats(restaurant):
        orders = Order.objects.filter(restaurant=restaurant)
        by_status = {row['status']: row['count'] for row in orders.values('status').annotate(count=Count('id'))}
        delivered = orders.filter(status=Order.Status.DELIVERED)
        rating = Review.objects.filter(
            restaurant=restaurant, is_published=True, restaurant_rating__isnull=False
        ).aggregate(avg=Avg('restaurant_rating'), count=Count('id'))

        return {
            'total_orders': sum(by_status.values()),
            'orders_by_status': {status: by_status.get(status, 0) for status in Order.Status.values},
            'revenue': to_money(delivered.aggregate(total=Sum('total_amount'))['total'] or 0),
            'average_rating': round(rating['avg'], 2) if rating['avg'] is not None else None,
            'review_count': rating['count'],
        }

    @staticmethod
    def delivery_stats(user):
        orders = Order.objects.filter(delivery_person=user)
        delivered_count = orders.filter(status=Order.Status.DELIVERED).count()
        active_count = orders.exclude(status__in=[Order.Status.DELIVERED, Order.Status.CANCELLED]).count()
        rating = Review.objects.filter(
            delivery_person=user, is_published=True, delivery_rating__isnull=False
        ).aggregate(avg=Avg('delivery_rating'), count=Count('id'))

        return {
            'total_deliveries': orders.count(),
            'delivered': delivered_count,
            'active': active_count,
            'earnings': to_money(Decimal(str(settings.DELIVERY_EARNING_PER_ORDER)) * delivered_count),
            'average_rating': round(rating['avg'], 2) if rating['avg'] is not None else None,
            'rating_count': rating['count'],
        }


class RatingService:
    """Customer ratings for delivered orders, stored as one Review per (customer, order)."""

    RATING_KINDS = ('restaurant', 'delivery')

    @staticmethod
    def _owned_order(order_id, user, lock=False):
        queryset = Order.objects.select_for_update() if lock else Order.objects.all()
        order = queryset.filter(order_id=order_id).first()
        if order is None:
            raise OrderNotFound()
        if order.customer_id != user.pk:
            logger.warning(f"User {user.email} tried to rate order {order_id} they do not own")
            raise OrderAccessDenied("You can only rate your own orders.")
        return order

    @staticmethod
    def fetch(order_id, user):
        order = RatingService._owned_order(order_id, user)
        return Review.objects.filter(customer=user, order=order).first()

    @staticmethod
    def submit(order_id, user, ratings):
        """
        Create the review on first submission, otherwise update only the
        supplied rating fields. Returns (review, created).
        """
        with transaction.atomic():
            order = RatingService._owned_order(order_id, user, lock=True)
            if order.status != Order.Status.DELIVERED:
                raise OrderNotDelivered()

            review = Review.objects.filter(customer=user, order=order).first()
            created = review is None
            if created:
                review = Review(
                    customer=user,
                    order=order,
                    restaurant_id=order.restaurant_id,
                    delivery_person_id=order.delivery_person_id,
                    batch_number=order.batch_number,
                    order_number=order.order_number,
                    total_amount=order.total_amount,
                    is_verified=True,
                    is_published=True,
                    is_flagged=False,
                )

            now = timezone.now()
            for kind in RatingService.RATING_KINDS:
                rating = ratings.get(f'{kind}_rating')
                if rating is None:
                    continue
                values = {
                    f'{kind}_rating': rating,
                    f'{kind}_comment': ratings.get(f'{kind}_comment', ''),
                    f'{kind}_rated_at': now,
                }
                for field, value in values.items():
                    setattr(review, field, value)
                    setattr(order, field, value)

            review.save()
            order.save(update_fields=list(Order.RATING_FIELDS) + ['updated_at'])

        logger.info(f"Review {'created' if created else 'updated'} for order {order.batch_number} by {user.email}")
        return review, created

    @staticmethod
    def remove(order_id, user):
        with transaction.atomic():
            order = RatingService._owned_order(order_id, user, lock=True)
            review = Review.objects.filter(customer=user, order=order).first()
            if review is None:
                raise ReviewNotFound()

            review.delete()
            order.clear_ratings()
            order.save(update_fields=list(Order.RATING_FIELDS) + ['updated_at'])

        logger.info(f"Review removed for order {order.batch_number} by {user.email}")

    @staticmethod
    def moderate(review, moderator, data):
        for field, value in data.items():
            setattr(review, field, value)
        review.moderated_by = moderator
        review.moderated_at = timezone.now()
        review.save()
        logger.info(f"Review {review.pk} moderated by {moderator.email}: {data}")
        return review
