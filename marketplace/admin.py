"""
Django admin configuration for ClassCart.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Listing, Order, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for accounts.

    Extends Django's UserAdmin with the student profile fields.
    """

    list_display = [
        'username',
        'email',
        'name',
        'student_id',
        'contact',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'gender',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'username',
        'email',
        'name',
        'student_id',
        'contact',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Student Info'), {
            'fields': (
                'name',
                'email',
                'student_id',
                'contact',
                'gender',
                'date_of_birth',
                'dob_edit_count',
                'avatar',
            )
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'name',
                'student_id',
                'password1',
                'password2',
            ),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields
        return []


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):

    list_display = [
        'title',
        'seller',
        'price',
        'category',
        'condition',
        'is_sold',
        'created_at',
    ]

    list_filter = [
        'is_sold',
        'category',
        'condition',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'seller__username',
        'seller__email',
    ]

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('seller', 'title', 'description', 'image_url')
        }),
        (_('Pricing & Details'), {
            'fields': ('price', 'category', 'condition', 'location', 'is_sold')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Orders are read-only here; state changes go through the API so the
    confirmation rules are applied.
    """

    list_display = [
        'id',
        'item_title',
        'buyer',
        'seller',
        'status',
        'confirmed_by_buyer',
        'confirmed_by_seller',
        'created_at',
        'completed_at',
    ]

    list_filter = [
        'status',
        'created_at',
        'completed_at',
    ]

    search_fields = [
        'item_title',
        'buyer__username',
        'buyer__email',
        'seller__username',
        'seller__email',
    ]

    readonly_fields = [
        'listing',
        'buyer',
        'seller',
        'item_title',
        'item_price',
        'item_image_url',
        'confirmed_by_buyer',
        'confirmed_by_seller',
        'status',
        'created_at',
        'updated_at',
        'completed_at',
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('listing', 'buyer', 'seller')
        }),
        (_('Item Snapshot'), {
            'fields': ('item_title', 'item_price', 'item_image_url')
        }),
        (_('Confirmation'), {
            'fields': ('confirmed_by_buyer', 'confirmed_by_seller', 'status', 'completed_at')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def has_add_permission(self, request):
        return False
