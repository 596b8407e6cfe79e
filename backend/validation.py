from .database import values
from .errors import ValidationError


def validate_choice(value, enum_cls, label):
    allowed = values(enum_cls)
    if value not in allowed:
        raise ValidationError(f"Invalid {label}. Must be one of: {', '.join(allowed)}")
    return value


def validate_units(units):
    # bool is an int subclass; JSON true must not count as 1 unit
    if isinstance(units, bool) or not isinstance(units, int) or units < 1:
        raise ValidationError('Units must be a positive integer')
    return units


def validate_required_text(value, label):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{label} is required')
    return value.strip()


def validate_optional_number(value, label, integer=False):
    if value is None:
        return None
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ValidationError(f'{label} must be a number')
    return value
