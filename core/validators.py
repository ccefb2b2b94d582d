"""
Custom field validators for bookings and reviews.
"""

from django.core.exceptions import ValidationError


def validate_rating(value):
    """
    Validate a review rating.

    Accepts integers from 1 to 5 inclusive. Booleans are rejected even
    though they are ints in Python.

    Args:
        value: Rating to validate

    Raises:
        ValidationError: If the rating is not an integer between 1 and 5
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            'Rating must be a whole number.',
            code='invalid_rating_type'
        )

    if value < 1 or value > 5:
        raise ValidationError(
            'Rating must be between 1 and 5.',
            code='invalid_rating_range'
        )


def validate_not_blank(value):
    """
    Reject empty or whitespace-only text.

    Args:
        value: Text to validate

    Raises:
        ValidationError: If the text is empty after trimming
    """
    if not value or not value.strip():
        raise ValidationError(
            'This field cannot be empty.',
            code='blank'
        )
