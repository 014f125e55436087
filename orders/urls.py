from django.urls import path

from .views import (
    OrderListCreateView, OrderDetailView, OrderStatusUpdateView,
    OrderRatingView, BatchLookupView,
    RestaurantReviewsView, RestaurantStatsView,
    AdminReviewListView, AdminReviewModerationView,
)

urlpatterns = [
    # Orders
    path('', OrderListCreateView.as_view(), name='order-list-create'),
    path('<uuid:order_id>/', OrderDetailView.as_view(), name='order-detail'),
    path('<uuid:order_id>/status/', OrderStatusUpdateView.as_view(), name='order-status'),
    path('<uuid:order_id>/rating/', OrderRatingView.as_view(), name='order-rating'),
    path('batch/<str:batch_number>/', BatchLookupView.as_view(), name='order-batch-lookup'),

    # Restaurant owner
    path('restaurant/reviews/', RestaurantReviewsView.as_view(), name='restaurant-reviews'),
    path('restaurant/stats/', RestaurantStatsView.as_view(), name='restaurant-stats'),

    # Moderation
    path('admin/reviews/', AdminReviewListView.as_view(), name='admin-review-list'),
    path('admin/reviews/<int:pk>/', AdminReviewModerationView.as_view(), name='admin-review-moderate'),
]
