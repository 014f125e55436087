import logging

from django.db.models import Avg, Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema

from authentication.core.base_view import BaseAPIView
from authentication.core.exceptions import OrderNotFound
from authentication.core.permissions import HasResourcePermission, IsAdmin, IsRestaurantOwner
from authentication.core.rbac import Action, Resource, apply_role_filter
from authentication.core.response import standardized_response

from .filters import OrderFilter
from .models import Order, Review
from .pagination import OrderPagination
from .serializers import (
    OrderSerializer,
    OrderCreateSerializer,
    OrderUpdateSerializer,
    StatusUpdateSerializer,
    BatchLookupSerializer,
    ReviewSerializer,
    RatingSubmitSerializer,
    ReviewModerationSerializer,
)
from .services import OrderService, RatingService
from .state_machine import OrderStatusMachine

logger = logging.getLogger(__name__)

ADMIN_REVIEW_LIMIT = 50


def _owned_restaurant(user):
    restaurant = user.owned_restaurant
    if restaurant is None:
        raise PermissionDenied("No restaurant is linked to this account.")
    return restaurant


# ---------------------------
# Orders
# ---------------------------
class OrderListCreateView(BaseAPIView, generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.ORDERS
    serializer_class = OrderSerializer
    pagination_class = OrderPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Order.objects.none()
        return apply_role_filter(OrderService.base_queryset(), self.request.user).order_by('-created_at')

    @swagger_auto_schema(request_body=OrderCreateSerializer, responses={201: OrderSerializer})
    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.create_order(request.user, serializer.validated_data)
        return Response(
            standardized_response(data=OrderSerializer(order).data, message="Order placed successfully"),
            status=status.HTTP_201_CREATED
        )


class OrderDetailView(BaseAPIView):
    """
    GET returns the order, PATCH changes status and/or batch tracking,
    DELETE cancels it. Cancelling is a status update, so DELETE is
    authorised as `orders:update`.
    """
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.ORDERS
    rbac_actions = {'DELETE': Action.UPDATE}

    @swagger_auto_schema(responses={200: OrderSerializer})
    def get(self, request, order_id):
        order = OrderService.get_order_for_user(order_id, request.user)
        return Response(standardized_response(
            data=OrderSerializer(order).data,
            allowed_transitions=OrderStatusMachine.allowed_targets(order.status, request.user.role),
        ))

    @swagger_auto_schema(request_body=OrderUpdateSerializer, responses={200: OrderSerializer})
    def patch(self, request, order_id):
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_order(
            order_id,
            request.user,
            status=serializer.validated_data.get('status'),
            batch_tracking=serializer.validated_data.get('batch_tracking'),
        )
        return Response(standardized_response(data=OrderSerializer(order).data, message="Order updated"))

    def delete(self, request, order_id):
        order = OrderService.cancel_order(order_id, request.user)
        return Response(standardized_response(data=OrderSerializer(order).data, message="Order cancelled"))


class OrderStatusUpdateView(BaseAPIView):
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.ORDERS

    @swagger_auto_schema(request_body=StatusUpdateSerializer, responses={200: OrderSerializer})
    def patch(self, request, order_id):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.change_status(order_id, serializer.validated_data['status'], request.user)
        return Response(standardized_response(
            data=OrderSerializer(order).data,
            message=f"Order status updated to {order.status}"
        ))


class BatchLookupView(BaseAPIView):
    """Public tracking by batch number, falling back to the order number."""
    permission_classes = [AllowAny]
    authentication_classes = []

    @swagger_auto_schema(responses={200: BatchLookupSerializer})
    def get(self, request, batch_number):
        order = (
            Order.objects
            .select_related('restaurant', 'delivery_person')
            .prefetch_related('items')
            .filter(Q(batch_number=batch_number) | Q(order_number=batch_number))
            .first()
        )
        if order is None:
            raise OrderNotFound(f"No order found for batch number {batch_number}.")
        return Response(standardized_response(data=BatchLookupSerializer(order).data))


# ---------------------------
# Ratings
# ---------------------------
class OrderRatingView(BaseAPIView):
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.REVIEWS

    def get(self, request, order_id):
        review = RatingService.fetch(order_id, request.user)
        return Response(standardized_response(data={
            'has_review': review is not None,
            'review': ReviewSerializer(review).data if review else None,
        }))

    @swagger_auto_schema(request_body=RatingSubmitSerializer, responses={201: ReviewSerializer, 200: ReviewSerializer})
    def post(self, request, order_id):
        serializer = RatingSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        review, created = RatingService.submit(order_id, request.user, serializer.validated_data)
        return Response(
            standardized_response(
                data=ReviewSerializer(review).data,
                message="Rating submitted" if created else "Rating updated"
            ),
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    def delete(self, request, order_id):
        RatingService.remove(order_id, request.user)
        return Response(standardized_response(message="Rating removed"))


class RestaurantReviewsView(BaseAPIView):
    permission_classes = [IsAuthenticated, IsRestaurantOwner]

    def get(self, request):
        restaurant = _owned_restaurant(request.user)
        reviews = (
            Review.objects
            .filter(restaurant=restaurant, is_published=True, restaurant_rating__isnull=False)
            .select_related('customer', 'order', 'delivery_person')
        )
        average = reviews.aggregate(avg=Avg('restaurant_rating'))['avg']
        return Response(standardized_response(data={
            'average_rating': round(average, 2) if average is not None else None,
            'count': reviews.count(),
            'reviews': ReviewSerializer(reviews, many=True).data,
        }))


class RestaurantStatsView(BaseAPIView):
    permission_classes = [IsAuthenticated, IsRestaurantOwner]

    def get(self, request):
        restaurant = _owned_restaurant(request.user)
        return Response(standardized_response(data=OrderService.restaurant_stats(restaurant)))


# ---------------------------
# Admin moderation
# ---------------------------
class AdminReviewListView(BaseAPIView):
    permission_classes = [IsAdmin]

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('flagged', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
    ])
    def get(self, request):
        reviews = Review.objects.select_related('customer', 'order', 'delivery_person', 'restaurant')
        flagged = request.query_params.get('flagged')
        if flagged is not None:
            reviews = reviews.filter(is_flagged=flagged.lower() in ('1', 'true', 'yes'))

        reviews = reviews.order_by('-created_at')[:ADMIN_REVIEW_LIMIT]
        return Response(standardized_response(data=ReviewSerializer(reviews, many=True).data))


class AdminReviewModerationView(BaseAPIView):
    permission_classes = [IsAdmin]

    @swagger_auto_schema(request_body=ReviewModerationSerializer, responses={200: ReviewSerializer})
    def patch(self, request, pk):
        review = get_object_or_404(Review, pk=pk)
        serializer = ReviewModerationSerializer(review, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        review = RatingService.moderate(review, request.user, serializer.validated_data)
        return Response(standardized_response(data=ReviewSerializer(review).data, message="Review updated"))
