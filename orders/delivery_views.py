import logging

from django.db.models import Avg
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema

from authentication.core.base_view import BaseAPIView
from authentication.core.exceptions import OrderNotFound
from authentication.core.permissions import HasResourcePermission, IsAdminOrDeliveryGuy, IsDeliveryGuy
from authentication.core.rbac import Resource
from authentication.core.response import standardized_response

from .models import Order, Review
from .pagination import OrderPagination
from .serializers import (
    OrderSerializer,
    OrderUpdateSerializer,
    DeliveryAssignSerializer,
    DeliveryStatusUpdateSerializer,
    ReviewSerializer,
)
from .services import OrderService

logger = logging.getLogger(__name__)


class AvailableOrdersView(BaseAPIView):
    """Confirmed or ready orders nobody has claimed yet, oldest first."""
    permission_classes = [IsAuthenticated, IsDeliveryGuy]

    @swagger_auto_schema(responses={200: OrderSerializer(many=True)})
    def get(self, request):
        orders = OrderService.available_for_delivery()
        return Response(standardized_response(data=OrderSerializer(orders, many=True).data))


class MyDeliveriesView(BaseAPIView, generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsDeliveryGuy]
    serializer_class = OrderSerializer
    pagination_class = OrderPagination

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Order.objects.none()
        orders = OrderService.base_queryset().filter(delivery_person=self.request.user)
        status_filter = self.request.query_params.get('status')
        if status_filter:
            orders = orders.filter(status=status_filter)
        return orders.order_by('-created_at')

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=Order.Status.values),
    ])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class AssignOrderView(BaseAPIView):
    permission_classes = [IsAuthenticated, IsDeliveryGuy]

    @swagger_auto_schema(request_body=DeliveryAssignSerializer, responses={200: OrderSerializer})
    def post(self, request):
        serializer = DeliveryAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.assign_delivery(serializer.validated_data['order_id'], request.user)
        return Response(
            standardized_response(data=OrderSerializer(order).data, message="Order assigned to you"),
            status=status.HTTP_200_OK
        )


class DeliveryStatusUpdateView(BaseAPIView):
    """Only the assigned delivery person (or an admin) may move the order along."""
    permission_classes = [IsAuthenticated, IsAdminOrDeliveryGuy]

    @swagger_auto_schema(request_body=DeliveryStatusUpdateSerializer, responses={200: OrderSerializer})
    def post(self, request):
        serializer = DeliveryStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.change_status(
            serializer.validated_data['order_id'],
            serializer.validated_data['status'],
            request.user,
        )
        return Response(standardized_response(
            data=OrderSerializer(order).data,
            message=f"Order status updated to {order.status}"
        ))


class BatchStatusUpdateView(BaseAPIView):
    """Status and handover details addressed by batch number."""
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.BATCHES

    @swagger_auto_schema(request_body=OrderUpdateSerializer, responses={200: OrderSerializer})
    def patch(self, request, batch_number):
        order_id = Order.objects.filter(batch_number=batch_number).values_list('order_id', flat=True).first()
        if order_id is None:
            raise OrderNotFound(f"No order found for batch number {batch_number}.")

        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_order(
            order_id,
            request.user,
            status=serializer.validated_data.get('status'),
            batch_tracking=serializer.validated_data.get('batch_tracking'),
        )
        return Response(standardized_response(data=OrderSerializer(order).data, message="Batch updated"))


class DeliveryStatsView(BaseAPIView):
    permission_classes = [IsAuthenticated, IsDeliveryGuy]

    def get(self, request):
        return Response(standardized_response(data=OrderService.delivery_stats(request.user)))


class DeliveryReviewsView(BaseAPIView):
    """Published reviews that rate the calling delivery person, newest first."""
    permission_classes = [IsAuthenticated, IsDeliveryGuy]

    @swagger_auto_schema(responses={200: ReviewSerializer(many=True)})
    def get(self, request):
        reviews = (
            Review.objects
            .filter(delivery_person=request.user, is_published=True, delivery_rating__isnull=False)
            .select_related('customer', 'order', 'restaurant')
            .order_by('-delivery_rated_at', '-created_at')
        )
        average = reviews.aggregate(avg=Avg('delivery_rating'))['avg']
        return Response(standardized_response(data={
            'average_rating': round(average, 2) if average is not None else None,
            'count': reviews.count(),
            'reviews': ReviewSerializer(reviews, many=True).data,
        }))
