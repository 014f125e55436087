from django.urls import path

from .delivery_views import (
    AvailableOrdersView, MyDeliveriesView, AssignOrderView,
    DeliveryStatusUpdateView, BatchStatusUpdateView, DeliveryStatsView, DeliveryReviewsView,
)

urlpatterns = [
    path('available-orders/', AvailableOrdersView.as_view(), name='delivery-available-orders'),
    path('my-orders/', MyDeliveriesView.as_view(), name='delivery-my-orders'),
    path('assign/', AssignOrderView.as_view(), name='delivery-assign'),
    path('update-status/', DeliveryStatusUpdateView.as_view(), name='delivery-update-status'),
    path('batch/<str:batch_number>/status/', BatchStatusUpdateView.as_view(), name='delivery-batch-status'),
    path('stats/', DeliveryStatsView.as_view(), name='delivery-stats'),
    path('reviews/', DeliveryReviewsView.as_view(), name='delivery-reviews'),
]
