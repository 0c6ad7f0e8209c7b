"""
Serializers for the ClassCart JSON API.

Field names follow the browser client (camelCase). Input serializers only
check types; the domain rules and their ordering live in
``marketplace.validators`` and are applied by ``marketplace.services``.
"""

import base64
import binascii
import io
import re
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from PIL import Image, UnidentifiedImageError
from rest_framework import serializers

from .models import Listing, Order

User = get_user_model()


def _optional_text(**kwargs):
    return serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        trim_whitespace=False,
        **kwargs
    )


# ============================================================================
# Accounts
# ============================================================================

class RegistrationSerializer(serializers.Serializer):
    """
    Registration payload.

    Every field is accepted as optional text here so a missing value reaches
    the registration rules and is reported with their message, in their order.
    """

    name = _optional_text()
    email = _optional_text()
    studentid = _optional_text()
    username = _optional_text()
    password = _optional_text(write_only=True)
    confirm = _optional_text(write_only=True)
    contact = _optional_text()
    gender = _optional_text()
    dob = _optional_text()


class LoginSerializer(serializers.Serializer):
    username = _optional_text()
    password = _optional_text(write_only=True)


class ProfileSerializer(serializers.ModelSerializer):
    """
    Profile as shown on the profile page.

    Excludes the password hash and every permission flag.
    """

    studentid = serializers.CharField(source='student_id', read_only=True)
    dob = serializers.DateField(source='date_of_birth', read_only=True)
    dobEditCount = serializers.IntegerField(source='dob_edit_count', read_only=True)
    imageUrl = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'username',
            'name',
            'email',
            'studentid',
            'contact',
            'gender',
            'dob',
            'dobEditCount',
            'imageUrl',
            'createdAt',
        ]
        read_only_fields = fields

    def get_imageUrl(self, obj):
        """
        Full URL to the avatar, or None when no picture was uploaded.
        """
        if obj.avatar:
            request = self.context.get('request')
            if request is not None:
                return request.build_absolute_uri(obj.avatar.url)
            return obj.avatar.url
        return None


class ProfileUpdateSerializer(serializers.Serializer):
    """Recognized profile fields. Anything else in the body is dropped."""

    name = _optional_text()
    contact = _optional_text()
    gender = _optional_text()
    dob = _optional_text()


class ProfilePictureSerializer(serializers.Serializer):
    """
    Avatar upload as a base64 data URL.

    Accepts JPEG, PNG and WEBP up to ``CLASSCART_AVATAR_MAX_BYTES`` and
    returns a ``ContentFile`` ready for the ImageField.
    """

    DATA_URL_PATTERN = re.compile(
        r'^data:(image/(?:jpeg|jpg|png|webp));base64,(.+)$', re.DOTALL
    )
    EXTENSIONS = {
        'image/jpeg': 'jpg',
        'image/jpg': 'jpg',
        'image/png': 'png',
        'image/webp': 'webp',
    }
    PILLOW_FORMATS = {'JPEG', 'PNG', 'WEBP'}

    imageBase64 = serializers.CharField(trim_whitespace=True)

    def validate_imageBase64(self, value):
        match = self.DATA_URL_PATTERN.match(value)
        if not match:
            raise serializers.ValidationError(
                'Image must be a JPEG, PNG or WEBP data URL.'
            )
        content_type, encoded = match.groups()

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise serializers.ValidationError('Image data is not valid base64.')

        max_size = settings.CLASSCART_AVATAR_MAX_BYTES
        if len(raw) > max_size:
            raise serializers.ValidationError(
                f'Image file size cannot exceed {max_size / (1024 * 1024):g}MB. '
                f'Current size: {len(raw) / (1024 * 1024):.2f}MB'
            )

        try:
            with Image.open(io.BytesIO(raw)) as image:
                image.verify()
                image_format = image.format
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
            raise serializers.ValidationError('File is not a valid image.')

        if image_format not in self.PILLOW_FORMATS:
            raise serializers.ValidationError(
                'Invalid image format. Allowed formats: jpeg, png, webp'
            )

        return ContentFile(raw, name=f'avatar.{self.EXTENSIONS[content_type]}')


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = _optional_text(write_only=True)
    newPassword = _optional_text(write_only=True)


# ============================================================================
# Listings
# ============================================================================

class ListingSerializer(serializers.ModelSerializer):
    """
    Listing create/read serializer.

    ``seller`` is read-only and always the session user on create.
    """

    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.00'),
        error_messages={'min_value': 'Price cannot be negative.'},
    )
    imageUrl = serializers.CharField(source='image_url')
    isSold = serializers.BooleanField(source='is_sold', read_only=True)
    seller = serializers.SerializerMethodField()
    sellerName = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Listing
        fields = [
            'id',
            'title',
            'description',
            'price',
            'category',
            'condition',
            'location',
            'imageUrl',
            'isSold',
            'seller',
            'sellerName',
            'createdAt',
        ]
        read_only_fields = ['id', 'isSold', 'seller', 'sellerName', 'createdAt']
        extra_kwargs = {
            'description': {'required': False},
            'condition': {'required': False},
            'location': {'required': False},
        }

    def get_seller(self, obj):
        return obj.seller.username if obj.seller else None

    def get_sellerName(self, obj):
        return obj.seller.name if obj.seller else None

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Title cannot be empty.')
        return value

    def validate_category(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Category cannot be empty.')
        return value


# ============================================================================
# Orders
# ============================================================================

class OrderSerializer(serializers.ModelSerializer):
    """
    Order as returned to both participants.

    ``itemSnapshot`` holds the title, price and image copied when the order
    was placed.
    """

    listingId = serializers.IntegerField(source='listing_id', read_only=True, allow_null=True)
    itemSnapshot = serializers.SerializerMethodField()
    buyer = serializers.CharField(source='buyer.username', read_only=True)
    seller = serializers.CharField(source='seller.username', read_only=True)
    confirmedByBuyer = serializers.BooleanField(source='confirmed_by_buyer', read_only=True)
    confirmedBySeller = serializers.BooleanField(source='confirmed_by_seller', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id',
            'listingId',
            'itemSnapshot',
            'buyer',
            'seller',
            'confirmedByBuyer',
            'confirmedBySeller',
            'status',
            'createdAt',
            'updatedAt',
            'completedAt',
        ]
        read_only_fields = fields

    def get_itemSnapshot(self, obj):
        return {
            'title': obj.item_title,
            'price': obj.item_price,
            'imageUrl': obj.item_image_url,
        }


class OrderCreateSerializer(serializers.Serializer):
    listingId = serializers.IntegerField(min_value=1)
