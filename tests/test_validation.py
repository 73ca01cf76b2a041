import pytest
from datetime import date

from app.services.errors import ValidationError
from app.utils.validation import (
    FieldError,
    raise_for_errors,
    validate_amount,
    validate_date,
    validate_email,
    validate_form,
    validate_password,
    validate_phone,
    validate_required,
    validate_text,
)


@pytest.mark.validation
class TestValidators:

    @pytest.mark.parametrize('email, ok', [
        ('owner@example.com', True),
        ('a.b+c@sub.example.org', True),
        ('', False),
        ('owner@example', False),
        ('owner example@example.com', False),
    ])
    def test_validate_email(self, email, ok):
        assert (validate_email(email) is None) == ok

    @pytest.mark.parametrize('password, message', [
        ('Password123', None),
        ('Pass12', 'Password must be at least 8 characters'),
        ('password123', 'Password must contain at least one uppercase letter'),
        ('PASSWORD123', 'Password must contain at least one lowercase letter'),
        ('Passwordabc', 'Password must contain at least one number'),
    ])
    def test_validate_password(self, password, message):
        error = validate_password(password)
        assert (error.message if error else None) == message

    def test_validate_required(self):
        assert validate_required('  ', 'name') == FieldError('name', 'name is required')
        assert validate_required(0, 'count') is None

    def test_validate_text(self):
        assert validate_text('Lawn Mow', 'name') is None
        assert validate_text(' ', 'name') == FieldError('name', 'name is required')
        assert validate_text(123, 'name') == FieldError('name', 'name must be text')
        assert validate_text(None, 'notes', required=False) is None
        assert validate_text(['x'], 'notes', required=False).message == 'notes must be text'

    def test_validate_phone_is_optional(self):
        assert validate_phone(None) is None
        assert validate_phone('+1 (555) 123-4567') is None
        assert validate_phone('555-12') is not None

    @pytest.mark.parametrize('amount, ok', [
        (10, True), ('0.01', True), (0, False), (-1, False), ('NaN', False), ('ten', False),
    ])
    def test_validate_amount(self, amount, ok):
        assert (validate_amount(amount, 'price') is None) == ok

    def test_validate_date(self):
        assert validate_date('2024-06-01', 'date') is None
        assert validate_date(date(2024, 6, 1), 'date') is None
        assert validate_date('01/06/2024', 'date').message == 'Invalid date format'

    def test_validate_form_collects_errors(self):
        result = validate_form([validate_email('bad'), None, validate_required('', 'name')])

        assert result.is_valid is False
        assert [e.field for e in result.errors] == ['email', 'name']

    def test_raise_for_errors(self):
        raise_for_errors([None, None])

        with pytest.raises(ValidationError) as exc:
            raise_for_errors([validate_required(None, 'customer_id')])
        assert exc.value.message == 'customer_id is required'
        assert exc.value.status_code == 400
