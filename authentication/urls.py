from django.urls import path

from .auth.views import (
    UserRegistrationView,
    UserLoginView,
    TokenRefreshView,
    LogoutView,
    MeView,
)
from .views_admin import RbacLogView

urlpatterns = [
    path('register/', UserRegistrationView.as_view(), name='register'),
    path('login/', UserLoginView.as_view(), name='login'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('logout/', LogoutView.as_view(), name='logout'),
    path('me/', MeView.as_view(), name='me'),

    # Admin
    path('admin/rbac-logs/', RbacLogView.as_view(), name='rbac-logs'),
]
