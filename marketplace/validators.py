"""
Validation rules for ClassCart accounts.

Each ``validate_*`` rule takes the raw value (a string or ``None``) and returns
``None`` when the value is acceptable, or a human-readable reason when it is
not. The browser client repeats the same rules for instant feedback; this
module is the authoritative copy.

The Django-facing helpers at the bottom (field validators and the password
validator class) wrap the same rules so model fields and Django's own
password tooling cannot drift from them.
"""

import re
from datetime import date

from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date


SCHOOL_EMAIL_DOMAIN = 'mcm.edu.ph'
STUDENT_ID_PREFIX = '202'
LOCAL_MOBILE_PREFIX = '09'
INTERNATIONAL_MOBILE_PREFIX = '+639'

MINIMUM_AGE = 17
MAXIMUM_PROFILE_AGE = 35
LATEST_BIRTHDATE = date(2014, 12, 31)

FULL_NAME_PATTERN = re.compile(r'^[A-Za-z ]+$')
SCHOOL_EMAIL_PATTERN = re.compile(
    r'^[^@\s]+@' + re.escape(SCHOOL_EMAIL_DOMAIN) + r'$', re.IGNORECASE
)
USERNAME_CHARS_PATTERN = re.compile(r'^[A-Za-z0-9._-]+$')
LOCAL_MOBILE_PATTERN = re.compile(r'^09\d{9}$')
INTERNATIONAL_MOBILE_PATTERN = re.compile(r'^\+639\d{9}$')


def validate_full_name(value):
    """Full name: 8-25 characters after trimming, letters and spaces only."""
    if not value:
        return 'Full name required'
    name = value.strip()
    if len(name) < 8 or len(name) > 25:
        return 'Full name must be 8-25 characters'
    if not FULL_NAME_PATTERN.match(name):
        return 'Full name must contain only letters and spaces'
    return None


def validate_school_email(value):
    if not value:
        return 'Email required'
    if not SCHOOL_EMAIL_PATTERN.match(value.strip()):
        return f'School email must end with @{SCHOOL_EMAIL_DOMAIN}'
    return None


def validate_student_id(value):
    if not value:
        return 'Student ID required'
    student_id = str(value).strip()
    if not re.match(r'^\d{10}$', student_id):
        return 'Student ID must be exactly 10 digits'
    if not student_id.startswith(STUDENT_ID_PREFIX):
        return 'Invalid Student ID'
    return None


def validate_username(value):
    if not value:
        return 'Username required'
    if len(value) < 3 or len(value) > 20:
        return 'Username must be 3-20 characters'
    if not USERNAME_CHARS_PATTERN.match(value):
        return "Username may only contain letters, numbers, '.', '_' and '-'"
    return None


def validate_password(value):
    """
    Password: 8-15 characters with at least one letter and one digit.

    Special characters are accepted but not required.
    """
    if not value:
        return 'Password required'
    if len(value) < 8 or len(value) > 15:
        return 'Password must be 8-15 characters'
    if not re.search(r'[A-Za-z]', value) or not re.search(r'\d', value):
        return 'Password must include at least one letter and one number'
    return None


def validate_contact(value):
    """
    Mobile number in local (09XXXXXXXXX) or international (+639XXXXXXXXX) form.

    The prefix-specific messages tell the user which part to fix.
    """
    if not value:
        return 'Mobile number required'
    contact = value.strip()

    if LOCAL_MOBILE_PATTERN.match(contact) or INTERNATIONAL_MOBILE_PATTERN.match(contact):
        return None

    if not re.match(r'^\+?\d+$', contact):
        return 'Mobile number must contain numbers only.'

    if contact.startswith(INTERNATIONAL_MOBILE_PREFIX):
        return 'Mobile number must have 11 digits.'

    if contact.startswith(LOCAL_MOBILE_PREFIX):
        return 'Mobile number must have 11 digits.'

    return 'Invalid mobile number prefix.'


def parse_birthdate(value):
    """
    Parse an ISO ``YYYY-MM-DD`` string into a date.

    Returns None for anything that is not a real calendar date.
    """
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return parse_date(str(value).strip())
    except ValueError:
        # Well formed but impossible, e.g. 2001-02-30
        return None


def age_on(birthdate, today):
    """Completed years between ``birthdate`` and ``today``."""
    years = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        years -= 1
    return years


def _years_before(day, years):
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 on a non-leap target year
        return day.replace(year=day.year - years, day=28)


def birthdate_bounds(today=None):
    """
    Return ``(earliest, latest)`` birthdates accepted by profile edits.

    The earliest bound moves with the calendar; the latest is fixed.
    """
    if today is None:
        today = timezone.localdate()
    return _years_before(today, MAXIMUM_PROFILE_AGE), LATEST_BIRTHDATE


def validate_date_of_birth(value, today=None):
    """Optional at registration; when present the user must be 17 or older."""
    if not value:
        return None
    birthdate = parse_birthdate(value)
    if birthdate is None:
        return 'Invalid date format'
    if today is None:
        today = timezone.localdate()
    if age_on(birthdate, today) < MINIMUM_AGE:
        return f'You must be at least {MINIMUM_AGE} years old to register'
    return None


def validate_birthdate_change(value, today=None):
    """Range check applied when a birthdate is edited from the profile page."""
    birthdate = parse_birthdate(value)
    if birthdate is None:
        return 'Invalid date format'
    earliest, latest = birthdate_bounds(today)
    if birthdate < earliest or birthdate > latest:
        return f'Birthdate must be between {earliest.isoformat()} and {latest.isoformat()}.'
    return None


REGISTRATION_RULES = (
    ('name', validate_full_name),
    ('email', validate_school_email),
    ('studentid', validate_student_id),
    ('username', validate_username),
    ('password', validate_password),
    ('contact', validate_contact),
    ('dob', validate_date_of_birth),
)


def first_registration_error(payload):
    """
    Run the registration rules in order.

    Returns ``(field, message)`` for the first failing field, or None.
    """
    for field, rule in REGISTRATION_RULES:
        message = rule(payload.get(field))
        if message:
            return field, message
    return None


# ============================================================================
# Django integration
# ============================================================================

def username_field_validator(value):
    """Model-field validator wrapping :func:`validate_username`."""
    message = validate_username(value)
    if message:
        raise ValidationError(message, code='invalid_username')


def contact_field_validator(value):
    """Model-field validator wrapping :func:`validate_contact`. Blank is allowed."""
    if not value:
        return
    message = validate_contact(value)
    if message:
        raise ValidationError(message, code='invalid_contact')


class ClassCartPasswordValidator:
    """
    Password validator for ``AUTH_PASSWORD_VALIDATORS``.

    Applies :func:`validate_password` so ``set_password`` callers that go
    through ``django.contrib.auth.password_validation`` follow the same rule.
    """

    def validate(self, password, user=None):
        message = validate_password(password)
        if message:
            raise ValidationError(message, code='password_policy')

    def get_help_text(self):
        return 'Your password must be 8-15 characters and include at least one letter and one number.'
