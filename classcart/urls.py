"""
URL configuration for the classcart project.

The API lives under /api/ without trailing slashes, matching the paths the
browser client calls.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from marketplace.views import (
    ChangePasswordView,
    ListingDetailView,
    ListingListCreateView,
    LoginView,
    LogoutView,
    MyOrdersView,
    OrderCancelView,
    OrderConfirmView,
    OrderCreateView,
    ProfilePictureView,
    ProfileView,
    RegisterView,
    TransactionHistoryView,
    health,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Account endpoints
    path('api/register', RegisterView.as_view(), name='user_register'),
    path('api/login', LoginView.as_view(), name='user_login'),
    path('api/logout', LogoutView.as_view(), name='user_logout'),
    path('api/profile', ProfileView.as_view(), name='user_profile'),
    path('api/profile/picture', ProfilePictureView.as_view(), name='user_profile_picture'),
    path('api/change-password', ChangePasswordView.as_view(), name='change_password'),

    # Listing endpoints
    path('api/listings', ListingListCreateView.as_view(), name='listing_list'),
    path('api/listings/<int:pk>', ListingDetailView.as_view(), name='listing_detail'),

    # Order endpoints
    path('api/orders', OrderCreateView.as_view(), name='order_create'),
    path('api/orders/my', MyOrdersView.as_view(), name='order_my'),
    path('api/orders/<int:pk>/confirm', OrderConfirmView.as_view(), name='order_confirm'),
    path('api/orders/<int:pk>/cancel', OrderCancelView.as_view(), name='order_cancel'),
    path('api/transactions', TransactionHistoryView.as_view(), name='transactions'),

    path('__health', health, name='health'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
