"""
Business operations for ClassCart.

Views translate HTTP into calls to these functions and back; everything that
touches more than one row, or must hold under concurrent requests, lives
here. Failures are raised as ``marketplace.exceptions`` errors.
"""

import logging
import re
from decimal import Decimal, InvalidOperation as DecimalInvalidOperation

from django.contrib.auth import authenticate, get_user_model, update_session_auth_hash
from django.db import IntegrityError, transaction
from django.db.models import Case, CharField, DateTimeField, F, Q, Value, When
from django.utils import timezone

from .exceptions import (
    DuplicateContact,
    DuplicateEmail,
    DuplicateUsername,
    Forbidden,
    InvalidCredentials,
    InvalidOperation,
    NoFieldsToUpdate,
    NotFound,
    PasswordMismatch,
    ValidationFailed,
)
from .models import Listing, Order
from .validators import (
    first_registration_error,
    parse_birthdate,
    validate_birthdate_change,
    validate_contact,
    validate_full_name,
    validate_password,
)

User = get_user_model()
logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('name', 'contact', 'gender', 'dob')
GENDER_VALUES = {value for value, _label in User.GENDER_CHOICES}

# Where each backend names the violated key in an IntegrityError message
UNIQUE_KEY_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: ([\w., ]+)"),  # SQLite: table.column
    re.compile(r"for key '([^']+)'"),  # MySQL: key name
    re.compile(r"unique constraint \"([^\"]+)\""),  # PostgreSQL: constraint name
)

DUPLICATE_ERRORS = (
    ('username', DuplicateUsername),
    ('email', DuplicateEmail),
    ('contact', DuplicateContact),
)


# ============================================================================
# Identity & uniqueness
# ============================================================================

def duplicate_error_for(exc):
    """
    Map a unique-index ``IntegrityError`` to the matching Duplicate* error.

    Returns None when the violation is not one of the identity columns.
    """
    message = str(exc)
    for pattern in UNIQUE_KEY_PATTERNS:
        match = pattern.search(message)
        if match:
            break
    else:
        return None

    names = set(re.split(r"[^a-z0-9]+", match.group(1).lower()))
    for column, error_class in DUPLICATE_ERRORS:
        if column in names:
            return error_class()
    return None


def _check_unique_identity(username=None, email=None, contact=None, exclude_pk=None):
    """Raise the first Duplicate* error for values already held by another user."""
    others = User.objects.all()
    if exclude_pk is not None:
        others = others.exclude(pk=exclude_pk)

    if username is not None and others.filter(username=username).exists():
        raise DuplicateUsername()
    if email is not None and others.filter(email=email).exists():
        raise DuplicateEmail()
    if contact and others.filter(contact=contact).exists():
        raise DuplicateContact()


def _normalize_gender(value):
    gender = (value or '').strip().lower()
    if gender and gender not in GENDER_VALUES:
        raise ValidationFailed('Invalid gender', field='gender')
    return gender


def register_user(payload):
    """
    Create an account from a registration payload.

    ``payload`` uses the client's keys: name, email, studentid, username,
    password, confirm, contact and the optional gender and dob.
    """
    error = first_registration_error(payload)
    if error is not None:
        field, message = error
        raise ValidationFailed(message, field=field)

    if payload.get('password') != payload.get('confirm'):
        raise PasswordMismatch()

    gender = _normalize_gender(payload.get('gender'))

    username = payload['username']
    email = payload['email'].strip().lower()
    contact = payload['contact'].strip()

    _check_unique_identity(username=username, email=email, contact=contact)

    user = User(
        username=username,
        email=email,
        name=payload['name'].strip(),
        student_id=str(payload['studentid']).strip(),
        contact=contact,
        gender=gender,
        date_of_birth=parse_birthdate(payload.get('dob')),
        dob_edit_count=0,
    )
    user.set_password(payload['password'])

    try:
        with transaction.atomic():
            user.save()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration
        duplicate = duplicate_error_for(exc)
        if duplicate is None:
            raise
        logger.warning(
            f"Registration hit unique index. "
            f"Username: {username}, Kind: {duplicate.kind}"
        )
        raise duplicate from exc

    logger.info(f"User registered: {user.username} (ID: {user.pk})")
    return user


def authenticate_user(request, username, password):
    """
    Check credentials and return the user.

    Unknown usernames, wrong passwords and inactive accounts all raise the
    same ``InvalidCredentials``.
    """
    if not username:
        raise ValidationFailed('Username required', field='username')
    if not password:
        raise ValidationFailed('Password required', field='password')

    # ModelBackend runs the hasher for unknown usernames as well
    user = authenticate(
        getattr(request, '_request', request),
        username=username,
        password=password,
    )
    if user is None:
        raise InvalidCredentials()
    return user


def update_profile(user, payload):
    """
    Apply a partial profile update for ``user``.

    Only name, contact, gender and dob are recognized. An empty ``dob`` leaves
    the stored birthdate untouched. A birthdate may be set freely once and
    changed at most once after that.
    """
    recognized = {key: payload[key] for key in PROFILE_FIELDS if key in payload}
    if not recognized:
        raise NoFieldsToUpdate()

    changes = {}

    if 'name' in recognized:
        message = validate_full_name(recognized['name'])
        if message:
            raise ValidationFailed(message, field='name')
        changes['name'] = recognized['name'].strip()

    if 'contact' in recognized:
        message = validate_contact(recognized['contact'])
        if message:
            raise ValidationFailed(message, field='contact')
        changes['contact'] = recognized['contact'].strip()

    if 'gender' in recognized:
        changes['gender'] = _normalize_gender(recognized['gender'])

    birthdate = None
    if recognized.get('dob'):
        message = validate_birthdate_change(recognized['dob'])
        if message:
            raise ValidationFailed(message, field='dob')
        birthdate = parse_birthdate(recognized['dob'])

    try:
        with transaction.atomic():
            locked = User.objects.select_for_update().get(pk=user.pk)

            if 'contact' in changes and changes['contact'] != locked.contact:
                _check_unique_identity(contact=changes['contact'], exclude_pk=locked.pk)

            if birthdate is not None:
                if locked.date_of_birth is None:
                    changes['date_of_birth'] = birthdate
                elif locked.date_of_birth != birthdate:
                    if locked.dob_edit_count >= 1:
                        raise InvalidOperation('Birthdate can only be edited once.', field='dob')
                    changes['date_of_birth'] = birthdate
                    changes['dob_edit_count'] = locked.dob_edit_count + 1

            for attr, value in changes.items():
                setattr(locked, attr, value)

            if changes:
                locked.save(update_fields=list(changes) + ['updated_at'])
    except IntegrityError as exc:
        duplicate = duplicate_error_for(exc)
        if duplicate is None:
            raise
        logger.warning(
            f"Profile update hit unique index. "
            f"User: {user.username}, Kind: {duplicate.kind}"
        )
        raise duplicate from exc

    if changes:
        logger.info(
            f"Profile updated for user: {locked.username}, "
            f"Fields: {', '.join(sorted(changes))}"
        )
    return locked


def update_profile_picture(user, image_file):
    """
    Store ``image_file`` as the user's avatar, replacing any previous one.

    ``image_file`` is a Django ``File`` already checked by the serializer.
    """
    with transaction.atomic():
        locked = User.objects.select_for_update().get(pk=user.pk)
        old_name = locked.avatar.name if locked.avatar else None

        locked.avatar.save(image_file.name, image_file, save=False)
        locked.save(update_fields=['avatar', 'updated_at'])

    if old_name and old_name != locked.avatar.name:
        locked.avatar.storage.delete(old_name)

    logger.info(f"Profile picture updated for user: {locked.username}")
    return locked


def change_password(request, user, current_password, new_password):
    """
    Replace the user's password after checking the current one.

    The session stays valid after the hash changes.
    """
    if not current_password:
        raise ValidationFailed('Current password required', field='currentPassword')

    if not user.check_password(current_password):
        raise InvalidCredentials('Current password is incorrect')

    message = validate_password(new_password)
    if message:
        raise ValidationFailed(message, field='newPassword')

    user.set_password(new_password)
    user.save(update_fields=['password', 'updated_at'])
    update_session_auth_hash(getattr(request, '_request', request), user)

    logger.info(f"Password changed for user: {user.username}")
    return user


# ============================================================================
# Listings
# ============================================================================

def create_listing(seller, data):
    """Create a listing owned by ``seller``. The seller never comes from the payload."""
    listing = Listing.objects.create(seller=seller, **data)
    logger.info(
        f"Listing created. Listing ID: {listing.pk}, "
        f"Seller: {seller.username}, Price: {listing.price}"
    )
    return listing


def _parse_price(params, name):
    raw = params.get(name)
    if raw in (None, ''):
        return None
    try:
        value = Decimal(raw)
    except (ValueError, DecimalInvalidOperation):
        raise ValidationFailed(f'Invalid value for "{name}". Must be a valid number.', field=name)
    if not value.is_finite() or value < 0:
        raise ValidationFailed(f'Invalid value for "{name}". Must be a valid number.', field=name)
    return value


def search_listings(params):
    """
    Return listings newest first, narrowed by the browse filters in ``params``.

    Supported keys: category, condition, q, minPrice, maxPrice, seller and
    available (``true`` hides sold items).
    """
    queryset = Listing.objects.select_related('seller').all()

    category = params.get('category')
    if category:
        queryset = queryset.filter(category__iexact=category)

    condition = params.get('condition')
    if condition:
        queryset = queryset.filter(condition__iexact=condition)

    q = (params.get('q') or '').strip()
    if q:
        queryset = queryset.filter(Q(title__icontains=q) | Q(description__icontains=q))

    min_price = _parse_price(params, 'minPrice')
    max_price = _parse_price(params, 'maxPrice')
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationFailed(
            'Minimum price cannot be greater than maximum price.', field='minPrice'
        )
    if min_price is not None:
        queryset = queryset.filter(price__gte=min_price)
    if max_price is not None:
        queryset = queryset.filter(price__lte=max_price)

    seller = params.get('seller')
    if seller:
        queryset = queryset.filter(seller__username=seller)

    available = params.get('available')
    if available is not None and available != '':
        if available.lower() == 'true':
            queryset = queryset.filter(is_sold=False)
        elif available.lower() != 'false':
            raise ValidationFailed(
                'Invalid value for "available". Must be "true" or "false".', field='available'
            )

    return queryset.order_by('-created_at', '-id')


def get_listing(listing_id):
    try:
        return Listing.objects.select_related('seller').get(pk=listing_id)
    except Listing.DoesNotExist:
        raise NotFound(f'Listing with ID {listing_id} does not exist.')


# ============================================================================
# Orders
# ============================================================================

def create_order(buyer, listing_id):
    """
    Place a pending order on a listing.

    Title, price and image are copied into the order so the history survives
    later listing changes.
    """
    with transaction.atomic():
        try:
            listing = Listing.objects.select_for_update().get(pk=listing_id)
        except Listing.DoesNotExist:
            raise NotFound(f'Listing with ID {listing_id} does not exist.')

        if listing.seller_id is None:
            raise InvalidOperation('This listing has no seller.')

        if listing.seller_id == buyer.pk:
            raise InvalidOperation('You cannot order your own listing.')

        if listing.is_sold:
            raise InvalidOperation('This item has already been sold.')

        if Order.objects.filter(
            buyer=buyer, listing=listing, status=Order.STATUS_PENDING
        ).exists():
            raise InvalidOperation('You already have a pending order for this item.')

        try:
            with transaction.atomic():
                order = Order.objects.create(
                    listing=listing,
                    buyer=buyer,
                    seller_id=listing.seller_id,
                    item_title=listing.title,
                    item_price=listing.price,
                    item_image_url=listing.image_url,
                )
        except IntegrityError as exc:
            message = str(exc).lower()
            if 'unique' not in message and 'duplicate' not in message:
                raise
            raise InvalidOperation('You already have a pending order for this item.') from exc

    logger.info(
        f"Order created. Order ID: {order.pk}, Listing ID: {listing.pk}, "
        f"Buyer: {buyer.username}, Seller ID: {order.seller_id}"
    )
    return order


def _lock_order(order_id):
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound(f'Order with ID {order_id} does not exist.')


def confirm_order(user, order_id):
    """
    Record the caller's confirmation of a meetup.

    The caller's flag is set by a single conditional UPDATE that also moves
    the order to ``completed`` when the other party's flag is already set in
    the stored row. Confirming twice is a no-op.
    """
    with transaction.atomic():
        order = _lock_order(order_id)

        role = order.role_of(user)
        if role is None:
            raise Forbidden('You are not a participant in this order.')

        if order.status == Order.STATUS_CANCELLED:
            raise InvalidOperation('Cannot confirm a cancelled order.')

        if role == Order.ROLE_BUYER:
            own_flag, other_flag = 'confirmed_by_buyer', 'confirmed_by_seller'
        else:
            own_flag, other_flag = 'confirmed_by_seller', 'confirmed_by_buyer'

        previous_status = order.status
        now = timezone.now()

        Order.objects.filter(pk=order.pk, status=Order.STATUS_PENDING).update(
            **{own_flag: True},
            status=Case(
                When(**{other_flag: True}, then=Value(Order.STATUS_COMPLETED)),
                default=F('status'),
                output_field=CharField(),
            ),
            completed_at=Case(
                When(**{other_flag: True}, then=Value(now)),
                default=F('completed_at'),
                output_field=DateTimeField(),
            ),
            updated_at=now,
        )
        order.refresh_from_db()

        if order.status == Order.STATUS_CANCELLED:
            raise InvalidOperation('Cannot confirm a cancelled order.')

        if order.status == Order.STATUS_COMPLETED and previous_status != Order.STATUS_COMPLETED:
            if order.listing_id is not None:
                Listing.objects.filter(pk=order.listing_id).update(is_sold=True, updated_at=now)

    if order.status != previous_status:
        logger.info(
            f"Order status changed. Order ID: {order.pk}, "
            f"Old Status: {previous_status}, New Status: {order.status}, "
            f"User: {user.username}"
        )
    else:
        logger.info(
            f"Order confirmed. Order ID: {order.pk}, Role: {role}, User: {user.username}"
        )
    return order


def cancel_order(user, order_id):
    """
    Cancel a pending order. Only the buyer may cancel.

    Cancelling an already cancelled order returns it unchanged; a completed
    order cannot be cancelled.
    """
    with transaction.atomic():
        order = _lock_order(order_id)

        role = order.role_of(user)
        if role is None:
            raise Forbidden('You are not a participant in this order.')
        if role != Order.ROLE_BUYER:
            raise Forbidden('Only the buyer can cancel this order.')

        if order.status == Order.STATUS_CANCELLED:
            return order

        is_valid, error_message = order.can_transition_to(Order.STATUS_CANCELLED)
        if not is_valid:
            raise InvalidOperation(error_message)

        Order.objects.filter(pk=order.pk, status=Order.STATUS_PENDING).update(
            status=Order.STATUS_CANCELLED,
            updated_at=timezone.now(),
        )
        order.refresh_from_db()

    logger.info(
        f"Order status changed. Order ID: {order.pk}, "
        f"Old Status: {Order.STATUS_PENDING}, New Status: {order.status}, "
        f"User: {user.username}"
    )
    return order


def orders_for(user, role=None, status=None):
    """
    Orders where ``user`` is buyer or seller, newest first.

    ``role`` narrows to one side; ``status`` to one state.
    """
    queryset = Order.objects.select_related('buyer', 'seller')

    if role in (None, ''):
        queryset = queryset.filter(Q(buyer=user) | Q(seller=user))
    elif role == Order.ROLE_BUYER:
        queryset = queryset.filter(buyer=user)
    elif role == Order.ROLE_SELLER:
        queryset = queryset.filter(seller=user)
    else:
        raise ValidationFailed('Role must be "buyer" or "seller".', field='role')

    if status not in (None, ''):
        valid_statuses = [value for value, _label in Order.STATUS_CHOICES]
        if status not in valid_statuses:
            raise ValidationFailed(
                f'Invalid status. Valid options: {", ".join(valid_statuses)}', field='status'
            )
        queryset = queryset.filter(status=status)

    return queryset.order_by('-created_at', '-id')
