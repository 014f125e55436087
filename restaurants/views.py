import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.filters import SearchFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from authentication.core.base_view import BaseAPIView
from authentication.core.permissions import HasResourcePermission
from authentication.core.rbac import Resource
from authentication.core.response import standardized_response

from .models import Restaurant, MenuItem, Address
from .serializers import RestaurantSerializer, MenuItemSerializer, AddressSerializer

logger = logging.getLogger(__name__)


# ---------------------------
# Restaurants & Menus
# ---------------------------
class RestaurantListView(BaseAPIView, generics.ListAPIView):
    permission_classes = [AllowAny]
    queryset = Restaurant.objects.filter(is_active=True)
    serializer_class = RestaurantSerializer
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_fields = ['city']
    search_fields = ['name', 'description']

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        serializer = self.get_serializer(queryset, many=True)
        return Response(standardized_response(data=serializer.data))


class RestaurantMenuView(BaseAPIView, generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = MenuItemSerializer

    def get_queryset(self):
        restaurant = get_object_or_404(Restaurant, pk=self.kwargs['restaurant_id'], is_active=True)
        return restaurant.menu_items.filter(is_available=True)

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(standardized_response(data=serializer.data))


class CreateMenuItemView(BaseAPIView, generics.CreateAPIView):
    """Restaurant owners add items to their own menu."""
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.MENU_ITEMS
    serializer_class = MenuItemSerializer

    @swagger_auto_schema(request_body=MenuItemSerializer, responses={201: MenuItemSerializer})
    def create(self, request, *args, **kwargs):
        restaurant = request.user.owned_restaurant
        if restaurant is None:
            raise PermissionDenied("You do not have a restaurant to add menu items to.")

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = serializer.save(restaurant=restaurant)
        logger.info(f"Menu item {item.pk} added to restaurant {restaurant.pk} by {request.user.email}")
        return Response(
            standardized_response(data=self.get_serializer(item).data, message="Menu item created"),
            status=status.HTTP_201_CREATED
        )


# ---------------------------
# Addresses
# ---------------------------
class AddressListCreateView(BaseAPIView, generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated, HasResourcePermission]
    rbac_resource = Resource.ADDRESSES
    serializer_class = AddressSerializer
    pagination_class = None

    def get_queryset(self):
        return Address.objects.filter(user=self.request.user)

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(standardized_response(data=serializer.data))

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            if serializer.validated_data.get('is_default'):
                Address.objects.filter(user=request.user, is_default=True).update(is_default=False)
            address = serializer.save(user=request.user)

        return Response(
            standardized_response(data=self.get_serializer(address).data, message="Address saved"),
            status=status.HTTP_201_CREATED
        )
