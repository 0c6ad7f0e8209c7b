"""
HTTP views for the ClassCart API.

Views authenticate, hand validated input to ``marketplace.services`` and
render the result. Errors raised by services propagate to the project's
exception handler, which renders ``{"error", "kind"}`` bodies.
"""

import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import ensure_csrf_cookie
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import services
from .exceptions import InvalidCredentials, MarketplaceError
from .identity import end_session, require_user, start_session
from .serializers import (
    ChangePasswordSerializer,
    ListingSerializer,
    LoginSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    ProfilePictureSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RegistrationSerializer,
)

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def health(request):
    """Liveness probe used by the deployment."""
    return JsonResponse({'ok': True})


# ============================================================================
# Accounts
# ============================================================================

class RegisterView(APIView):
    """
    Create an account.

    POST /api/register
    Request body: {"name", "email", "studentid", "username", "password",
                   "confirm", "contact", "gender"?, "dob"?}

    Success response (201): {"ok": true, "message": "Registered"}

    Error responses:
    - 400: ValidationError (with "field") or PasswordMismatch
    - 409: DuplicateUsername / DuplicateEmail / DuplicateContact
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.register_user(serializer.validated_data)

        return Response(
            {'ok': True, 'message': 'Registered'},
            status=status.HTTP_201_CREATED
        )


@method_decorator(ensure_csrf_cookie, name='dispatch')
class LoginView(APIView):
    """
    Start a session.

    Security features:
    - Rate limiting per client (throttle scope "login")
    - One generic error for unknown user, wrong password and inactive account
    - Failed attempts logged with client IP

    POST /api/login
    Request body: {"username": "...", "password": "..."}

    Success response (200):
    {"ok": true, "message": "Logged in", "user": {"username": "..."}}

    Error response (401): {"error": "Invalid credentials", "kind": "InvalidCredentials"}
    """
    permission_classes = [AllowAny]
    # The login form is posted before a session exists; no CSRF check here
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        username = serializer.validated_data.get('username')
        try:
            user = services.authenticate_user(
                request,
                username,
                serializer.validated_data.get('password'),
            )
        except InvalidCredentials:
            logger.warning(
                f"Failed login attempt. "
                f"Username: {username}, "
                f"IP: {get_client_ip(request)}"
            )
            raise

        start_session(request, user)

        logger.info(
            f"Successful login. "
            f"User: {user.username} (ID: {user.pk}), "
            f"IP: {get_client_ip(request)}"
        )

        return Response({
            'ok': True,
            'message': 'Logged in',
            'user': {'username': user.username},
        }, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """
    End the session. Succeeds with or without one.

    POST /api/logout
    Success response (200): {"ok": true, "message": "Logged out"}
    """
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        end_session(request)
        return Response({'ok': True, 'message': 'Logged out'}, status=status.HTTP_200_OK)


@method_decorator(ensure_csrf_cookie, name='dispatch')
class ProfileView(APIView):
    """
    Read and update the session user's profile.

    GET /api/profile
    PUT|PATCH /api/profile
    Request body: any of {"name", "contact", "gender", "dob"}; other keys ignored

    Success response (200): profile JSON for GET, {"ok": true, "user": {...}} for updates

    Error responses:
    - 401: Unauthenticated
    - 400: ValidationError / NoFieldsToUpdate
    - 409: DuplicateContact / InvalidOperation (birthdate already edited)
    """
    permission_classes = [AllowAny]  # Checked manually for the 401 body

    def get(self, request, *args, **kwargs):
        user = require_user(request)
        serializer = ProfileSerializer(user, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    def put(self, request, *args, **kwargs):
        return self._update(request)

    def patch(self, request, *args, **kwargs):
        return self._update(request)

    def _update(self, request):
        user = require_user(request)

        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = services.update_profile(user, serializer.validated_data)

        response_serializer = ProfileSerializer(updated, context={'request': request})
        return Response({'ok': True, 'user': response_serializer.data}, status=status.HTTP_200_OK)


class ProfilePictureView(APIView):
    """
    Replace the session user's avatar.

    PUT /api/profile/picture
    Request body: {"imageBase64": "data:image/png;base64,..."}

    Success response (200): {"ok": true, "user": {"imageUrl": "..."}}
    """
    permission_classes = [AllowAny]

    def put(self, request, *args, **kwargs):
        user = require_user(request)

        serializer = ProfilePictureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = services.update_profile_picture(user, serializer.validated_data['imageBase64'])

        image_url = ProfileSerializer(updated, context={'request': request}).data['imageUrl']
        return Response({'ok': True, 'user': {'imageUrl': image_url}}, status=status.HTTP_200_OK)


class ChangePasswordView(APIView):
    """
    PUT /api/change-password
    Request body: {"currentPassword": "...", "newPassword": "..."}
    """
    permission_classes = [AllowAny]

    def put(self, request, *args, **kwargs):
        user = require_user(request)

        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            services.change_password(
                request,
                user,
                serializer.validated_data.get('currentPassword'),
                serializer.validated_data.get('newPassword'),
            )
        except InvalidCredentials:
            logger.warning(
                f"Password change with wrong current password. "
                f"User: {user.username} (ID: {user.pk}), "
                f"IP: {get_client_ip(request)}"
            )
            raise

        return Response({'ok': True, 'message': 'Password updated'}, status=status.HTTP_200_OK)


# ============================================================================
# Listings
# ============================================================================

class ListingListCreateView(APIView):
    """
    Browse listings or post a new one.

    GET /api/listings
    Query Parameters:
    - category, condition: exact match (case-insensitive)
    - q: substring of title or description
    - minPrice, maxPrice: price range
    - seller: seller username
    - available: "true" hides sold items

    POST /api/listings (session required)
    Request body: {"title", "price", "category", "imageUrl",
                   "description"?, "condition"?, "location"?}
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        queryset = services.search_listings(request.query_params)
        serializer = ListingSerializer(queryset, many=True, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        user = require_user(request)

        serializer = ListingSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        listing = services.create_listing(user, serializer.validated_data)

        response_serializer = ListingSerializer(listing, context={'request': request})
        return Response(response_serializer.data, status=status.HTTP_201_CREATED)


class ListingDetailView(APIView):
    """GET /api/listings/<id>"""
    permission_classes = [AllowAny]

    def get(self, request, pk, *args, **kwargs):
        listing = services.get_listing(pk)
        serializer = ListingSerializer(listing, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# Orders
# ============================================================================

class OrderCreateView(APIView):
    """
    Place an order on a listing.

    POST /api/orders
    Request body: {"listingId": 12}

    Success response (201): order JSON with status "pending"

    Error responses:
    - 401: Unauthenticated
    - 404: Listing not found
    - 409: InvalidOperation (own listing, sold, already pending)
    """
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        user = require_user(request)

        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = services.create_order(user, serializer.validated_data['listingId'])

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class MyOrdersView(APIView):
    """
    Orders where the session user is buyer or seller, newest first.

    GET /api/orders/my?role=buyer|seller&status=pending|completed|cancelled
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        user = require_user(request)
        queryset = services.orders_for(
            user,
            role=request.query_params.get('role'),
            status=request.query_params.get('status'),
        )
        return Response(OrderSerializer(queryset, many=True).data, status=status.HTTP_200_OK)


class TransactionHistoryView(APIView):
    """
    Purchase history of the session user.

    GET /api/transactions?status=...
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        user = require_user(request)
        queryset = services.orders_for(
            user,
            role='buyer',
            status=request.query_params.get('status'),
        )
        return Response(OrderSerializer(queryset, many=True).data, status=status.HTTP_200_OK)


class OrderConfirmView(APIView):
    """
    Record the caller's confirmation that the meetup happened.

    POST /api/orders/<id>/confirm

    Error responses:
    - 401: Unauthenticated
    - 403: Caller is not buyer or seller
    - 404: Order not found
    - 409: Order was cancelled
    """
    permission_classes = [AllowAny]

    def post(self, request, pk, *args, **kwargs):
        user = require_user(request)
        try:
            order = services.confirm_order(user, pk)
        except MarketplaceError:
            logger.warning(
                f"Order confirmation rejected. "
                f"Order ID: {pk}, "
                f"User: {user.username} (ID: {user.pk}), "
                f"IP: {get_client_ip(request)}"
            )
            raise
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderCancelView(APIView):
    """
    Cancel a pending order. Buyer only.

    POST /api/orders/<id>/cancel
    """
    permission_classes = [AllowAny]

    def post(self, request, pk, *args, **kwargs):
        user = require_user(request)
        try:
            order = services.cancel_order(user, pk)
        except MarketplaceError:
            logger.warning(
                f"Order cancellation rejected. "
                f"Order ID: {pk}, "
                f"User: {user.username} (ID: {user.pk}), "
                f"IP: {get_client_ip(request)}"
            )
            raise
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)
