"""Input checks run before anything touches the network."""

import re

from domain.errors import ValidationFailure


MIN_PASSWORD_LENGTH = 6
MIN_RATING = 1
MAX_RATING = 5
EMAIL_RE = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,64}")


def clean_query(query: str) -> str:
    return query.strip()


def is_valid_rating(rating: int) -> bool:
    return MIN_RATING <= rating <= MAX_RATING


def is_valid_comment(text: str) -> bool:
    return bool(text.strip())


def is_valid_password(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH


def is_valid_email(email: str) -> bool:
    return EMAIL_RE.fullmatch(email) is not None


def validate_comment(text: str) -> str:
    text = text.strip()
    if not text:
        raise ValidationFailure("Comment cannot be empty")
    return text


def validate_rating(rating: int, review: str | None = None) -> tuple[int, str | None]:
    if not is_valid_rating(rating):
        raise ValidationFailure(
            f"Rating must be between {MIN_RATING} and {MAX_RATING} stars"
        )
    review = review.strip() if review else None
    return rating, review or None


def validate_username(username: str) -> str:
    username = username.strip()
    if not username:
        raise ValidationFailure("Username is required")
    return username


def validate_credentials(email: str, password: str) -> str:
    email = email.strip()
    if not email:
        raise ValidationFailure("Email is required")
    if not is_valid_email(email):
        raise ValidationFailure("Email address is not valid")
    if not password:
        raise ValidationFailure("Password is required")
    if not is_valid_password(password):
        raise ValidationFailure(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return email


def validate_password_change(
    current_password: str, new_password: str, confirm_password: str
) -> None:
    if not current_password:
        raise ValidationFailure("Enter current password to change password")
    if not is_valid_password(new_password):
        raise ValidationFailure(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if new_password != confirm_password:
        raise ValidationFailure("Passwords do not match")
