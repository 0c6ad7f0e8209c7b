"""
Data model for the ClassCart campus marketplace.
"""

from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import contact_field_validator, username_field_validator


def user_avatar_upload_path(instance, filename):
    """
    Generate upload path for user avatars.

    Path format: avatars/{username}/{filename}
    """
    return f'avatars/{instance.username}/{filename}'


class User(AbstractUser):
    """
    ClassCart account.

    Additional fields:
    - name: Full name as shown on listings
    - email: School email, unique, stored lower-case
    - student_id: 10 digit institutional ID
    - contact: Mobile number, unique when present
    - gender, date_of_birth: Optional profile details
    - dob_edit_count: How many times an existing birthdate was changed (max 1)
    - avatar: Optional profile picture
    """

    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]

    username = models.CharField(
        _('username'),
        max_length=20,
        unique=True,
        validators=[username_field_validator],
        error_messages={
            'unique': _('Username already taken'),
        },
        help_text=_('Required. 3-20 characters: letters, digits and . _ - only.')
    )

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('Email already registered'),
        },
        help_text=_('Required. School email address.')
    )

    name = models.CharField(
        _('full name'),
        max_length=25,
        blank=True,
        default='',
    )

    student_id = models.CharField(
        _('student ID'),
        max_length=10,
        blank=True,
        default='',
    )

    # NULL rather than '' so users without a number do not collide on the unique index
    contact = models.CharField(
        _('mobile number'),
        max_length=13,
        unique=True,
        null=True,
        blank=True,
        validators=[contact_field_validator],
        error_messages={
            'unique': _('Mobile number already registered'),
        },
    )

    gender = models.CharField(
        _('gender'),
        max_length=10,
        choices=GENDER_CHOICES,
        blank=True,
        default='',
    )

    date_of_birth = models.DateField(
        _('date of birth'),
        null=True,
        blank=True,
    )

    dob_edit_count = models.PositiveSmallIntegerField(
        _('birthdate edit count'),
        default=0,
        help_text=_('Number of times an existing birthdate has been changed.')
    )

    avatar = models.ImageField(
        _('avatar'),
        upload_to=user_avatar_upload_path,
        blank=True,
        null=True,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    REQUIRED_FIELDS = ['email']

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(dob_edit_count__lte=1),
                name='user_dob_edited_at_most_once',
            ),
        ]

    def __str__(self):
        return self.username

    def save(self, *args, **kwargs):
        """Normalize email case and store a blank contact as NULL."""
        if self.email:
            self.email = self.email.strip().lower()
        if not self.contact:
            self.contact = None
        super().save(*args, **kwargs)


class Listing(models.Model):
    """
    An item a user offers for sale.

    Listings are read-only once created; ``is_sold`` is flipped when an
    order for the listing completes.
    """

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='listings',
        help_text=_('User selling this item')
    )

    title = models.CharField(_('title'), max_length=200)
    description = models.TextField(_('description'), blank=True, default='')

    price = models.DecimalField(
        _('price'),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Price cannot be negative.'))],
    )

    category = models.CharField(_('category'), max_length=50)
    condition = models.CharField(_('condition'), max_length=50, blank=True, default='')
    location = models.CharField(_('location'), max_length=200, blank=True, default='')

    # Plain URL or base64 data URL supplied by the client
    image_url = models.TextField(_('image URL'))

    is_sold = models.BooleanField(_('is sold'), default=False)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('listing')
        verbose_name_plural = _('listings')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['category'], name='listing_category_idx'),
            models.Index(fields=['is_sold'], name='listing_is_sold_idx'),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        super().clean()

        if not self.title or not self.title.strip():
            raise ValidationError({
                'title': _('Title cannot be empty.')
            })

        if self.price is not None and self.price < 0:
            raise ValidationError({
                'price': _('Price cannot be negative.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Order(models.Model):
    """
    A buyer's claim on a listing, tracked until the meetup happens.

    Buyer and seller confirm independently. The order completes when both
    flags are set; only the buyer may cancel a pending order. ``completed``
    and ``cancelled`` are terminal.

    Title, price and image are copied from the listing when the order is
    placed so later changes to the listing do not rewrite order history.
    """

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    VALID_TRANSITIONS = {
        STATUS_PENDING: [STATUS_COMPLETED, STATUS_CANCELLED],
        STATUS_COMPLETED: [],
        STATUS_CANCELLED: [],
    }

    ROLE_BUYER = 'buyer'
    ROLE_SELLER = 'seller'

    listing = models.ForeignKey(
        Listing,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders',
    )

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='purchases',
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sales',
    )

    item_title = models.CharField(_('item title'), max_length=200)
    item_price = models.DecimalField(_('item price'), max_digits=10, decimal_places=2)
    item_image_url = models.TextField(_('item image URL'), blank=True, default='')

    confirmed_by_buyer = models.BooleanField(_('confirmed by buyer'), default=False)
    confirmed_by_seller = models.BooleanField(_('confirmed by seller'), default=False)

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)

    class Meta:
        verbose_name = _('order')
        verbose_name_plural = _('orders')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='order_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(buyer=models.F('seller')),
                name='order_buyer_is_not_seller',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status='completed', confirmed_by_buyer=True, confirmed_by_seller=True)
                    | (
                        ~models.Q(status='completed')
                        & ~models.Q(confirmed_by_buyer=True, confirmed_by_seller=True)
                    )
                ),
                name='order_completed_iff_both_confirmed',
            ),
            models.UniqueConstraint(
                fields=['buyer', 'listing'],
                condition=models.Q(status='pending'),
                name='unique_pending_order_per_buyer_listing',
            ),
        ]

    def __str__(self):
        return f'Order #{self.pk}: {self.item_title} ({self.status})'

    @property
    def is_terminal(self):
        return not self.VALID_TRANSITIONS.get(self.status)

    def role_of(self, user):
        """Return 'buyer', 'seller' or None for ``user``'s part in this order."""
        if user is None:
            return None
        if self.buyer_id == user.pk:
            return self.ROLE_BUYER
        if self.seller_id == user.pk:
            return self.ROLE_SELLER
        return None

    def can_transition_to(self, new_status):
        """
        Validate a status change against the state machine.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if new_status == self.status:
            return True, None

        if self.status == self.STATUS_COMPLETED:
            return False, 'Cannot modify a completed order.'

        if self.status == self.STATUS_CANCELLED:
            return False, 'Cannot modify a cancelled order.'

        if new_status not in self.VALID_TRANSITIONS.get(self.status, []):
            return False, f'Invalid status transition from {self.status} to {new_status}.'

        if new_status == self.STATUS_COMPLETED and not (
            self.confirmed_by_buyer and self.confirmed_by_seller
        ):
            return False, 'An order completes only after both buyer and seller confirm.'

        return True, None
