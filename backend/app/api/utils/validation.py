"""Validation utilities."""


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and comparison.

    Strips surrounding whitespace and lowercases the whole address.

    Examples:
        >>> normalize_email("  John.Doe@EXAMPLE.COM  ")
        "john.doe@example.com"
    """
    if not email:
        return email
    return email.strip().lower()
