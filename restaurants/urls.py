from django.urls import path
from .views import (
    RestaurantListView,
    RestaurantMenuView,
    CreateMenuItemView,
    AddressListCreateView,
)

urlpatterns = [
    path('', RestaurantListView.as_view(), name='restaurant-list'),
    path('<int:restaurant_id>/menu/', RestaurantMenuView.as_view(), name='restaurant-menu'),
    path('menu-items/', CreateMenuItemView.as_view(), name='menu-item-create'),
    path('addresses/', AddressListCreateView.as_view(), name='address-list-create'),
]
