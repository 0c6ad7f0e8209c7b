"""
Tests for the account validation rules.

The rules are pure functions: no database access, and ``today`` is passed in
wherever the result depends on the calendar.
"""

from datetime import date

import pytest
from django.core.exceptions import ValidationError

from marketplace.validators import (
    ClassCartPasswordValidator,
    age_on,
    birthdate_bounds,
    contact_field_validator,
    first_registration_error,
    parse_birthdate,
    username_field_validator,
    validate_birthdate_change,
    validate_contact,
    validate_date_of_birth,
    validate_full_name,
    validate_password,
    validate_school_email,
    validate_student_id,
    validate_username,
)

TODAY = date(2025, 6, 15)


class TestFullName:

    @pytest.mark.parametrize('value', ['Juan Dela Cruz', '  Maria Clara  ', 'Abcdefgh'])
    def test_valid_names(self, value):
        assert validate_full_name(value) is None

    @pytest.mark.parametrize('value, message', [
        (None, 'Full name required'),
        ('', 'Full name required'),
        ('Juan', 'Full name must be 8-25 characters'),
        ('A' * 26, 'Full name must be 8-25 characters'),
        ('Juan D3la Cruz', 'Full name must contain only letters and spaces'),
        ("Juan O'Neil Cruz", 'Full name must contain only letters and spaces'),
    ])
    def test_invalid_names(self, value, message):
        assert validate_full_name(value) == message


class TestSchoolEmail:

    @pytest.mark.parametrize('value', ['juan@mcm.edu.ph', 'Juan.Cruz@MCM.EDU.PH'])
    def test_school_domain_accepted_case_insensitively(self, value):
        assert validate_school_email(value) is None

    @pytest.mark.parametrize('value', ['juan@gmail.com', 'juan@mcm.edu.ph.com', 'mcm.edu.ph', 'a b@mcm.edu.ph'])
    def test_other_domains_rejected(self, value):
        assert validate_school_email(value) == 'School email must end with @mcm.edu.ph'

    def test_missing_email(self):
        assert validate_school_email('') == 'Email required'


class TestStudentId:

    def test_valid_id(self):
        assert validate_student_id('2021234567') is None

    @pytest.mark.parametrize('value, message', [
        (None, 'Student ID required'),
        ('20212345', 'Student ID must be exactly 10 digits'),
        ('202123456a', 'Student ID must be exactly 10 digits'),
        ('2011234567', 'Invalid Student ID'),
    ])
    def test_invalid_ids(self, value, message):
        assert validate_student_id(value) == message


class TestUsername:

    @pytest.mark.parametrize('value', ['abc', 'juan.dc_1-x', 'a' * 20])
    def test_valid_usernames(self, value):
        assert validate_username(value) is None

    @pytest.mark.parametrize('value, message', [
        ('', 'Username required'),
        ('ab', 'Username must be 3-20 characters'),
        ('a' * 21, 'Username must be 3-20 characters'),
        ('juan dc', "Username may only contain letters, numbers, '.', '_' and '-'"),
        ('juan@dc', "Username may only contain letters, numbers, '.', '_' and '-'"),
    ])
    def test_invalid_usernames(self, value, message):
        assert validate_username(value) == message


class TestPassword:

    @pytest.mark.parametrize('value', ['abc12345', 'Password123', 'P@ssw0rd!'])
    def test_valid_passwords(self, value):
        assert validate_password(value) is None

    @pytest.mark.parametrize('value, message', [
        ('', 'Password required'),
        ('abc123', 'Password must be 8-15 characters'),
        ('abc1234567890123', 'Password must be 8-15 characters'),
        ('abcdefgh', 'Password must include at least one letter and one number'),
        ('12345678', 'Password must include at least one letter and one number'),
    ])
    def test_invalid_passwords(self, value, message):
        assert validate_password(value) == message


class TestContact:

    @pytest.mark.parametrize('value', ['09171234567', '+639171234567'])
    def test_valid_numbers(self, value):
        assert validate_contact(value) is None

    @pytest.mark.parametrize('value, message', [
        ('', 'Mobile number required'),
        ('0917-123-4567', 'Mobile number must contain numbers only.'),
        ('0917123456', 'Mobile number must have 11 digits.'),
        ('091712345678', 'Mobile number must have 11 digits.'),
        ('+63917123456', 'Mobile number must have 11 digits.'),
        ('12345', 'Invalid mobile number prefix.'),
        ('08171234567', 'Invalid mobile number prefix.'),
    ])
    def test_invalid_numbers(self, value, message):
        assert validate_contact(value) == message


class TestBirthdate:

    def test_parse_birthdate(self):
        assert parse_birthdate('2003-05-20') == date(2003, 5, 20)
        assert parse_birthdate(date(2003, 5, 20)) == date(2003, 5, 20)
        assert parse_birthdate('2001-02-30') is None
        assert parse_birthdate('20/05/2003') is None
        assert parse_birthdate('') is None

    def test_age_counts_completed_years(self):
        assert age_on(date(2008, 6, 15), TODAY) == 17
        assert age_on(date(2008, 6, 16), TODAY) == 16

    def test_birthdate_is_optional_at_registration(self):
        assert validate_date_of_birth(None, today=TODAY) is None
        assert validate_date_of_birth('', today=TODAY) is None

    def test_seventeenth_birthday_today_is_accepted(self):
        assert validate_date_of_birth('2008-06-15', today=TODAY) is None

    def test_under_seventeen_rejected(self):
        assert validate_date_of_birth('2008-06-16', today=TODAY) == (
            'You must be at least 17 years old to register'
        )

    def test_impossible_date_rejected(self):
        assert validate_date_of_birth('2001-02-30', today=TODAY) == 'Invalid date format'

    def test_profile_bounds(self):
        assert birthdate_bounds(TODAY) == (date(1990, 6, 15), date(2014, 12, 31))

    def test_profile_bounds_from_leap_day(self):
        earliest, _latest = birthdate_bounds(date(2024, 2, 29))
        assert earliest == date(1989, 2, 28)

    @pytest.mark.parametrize('value', ['1990-06-15', '2000-01-01', '2014-12-31'])
    def test_birthdate_change_inside_range(self, value):
        assert validate_birthdate_change(value, today=TODAY) is None

    @pytest.mark.parametrize('value', ['1990-06-14', '2015-01-01'])
    def test_birthdate_change_outside_range(self, value):
        assert validate_birthdate_change(value, today=TODAY) == (
            'Birthdate must be between 1990-06-15 and 2014-12-31.'
        )

    def test_birthdate_change_requires_a_date(self):
        assert validate_birthdate_change('soon', today=TODAY) == 'Invalid date format'


class TestRegistrationOrder:

    def test_valid_payload_has_no_error(self, registration_payload):
        assert first_registration_error(registration_payload) is None

    def test_first_failing_field_is_reported(self, registration_payload):
        registration_payload['name'] = 'Juan'
        registration_payload['email'] = 'juan@gmail.com'
        registration_payload['contact'] = '12345'

        assert first_registration_error(registration_payload) == (
            'name', 'Full name must be 8-25 characters'
        )

    def test_fields_checked_in_form_order(self, registration_payload):
        registration_payload['password'] = 'short'
        registration_payload['contact'] = ''

        assert first_registration_error(registration_payload) == (
            'password', 'Password must be 8-15 characters'
        )

    def test_missing_contact(self, registration_payload):
        del registration_payload['contact']
        assert first_registration_error(registration_payload) == ('contact', 'Mobile number required')


class TestDjangoIntegration:

    def test_username_field_validator(self):
        username_field_validator('juan.dc')
        with pytest.raises(ValidationError):
            username_field_validator('juan dc')

    def test_contact_field_validator_allows_blank(self):
        contact_field_validator('')
        contact_field_validator(None)
        with pytest.raises(ValidationError):
            contact_field_validator('12345')

    def test_password_validator(self):
        validator = ClassCartPasswordValidator()
        validator.validate('Password123')
        with pytest.raises(ValidationError):
            validator.validate('password')
        assert 'letter' in validator.get_help_text()
