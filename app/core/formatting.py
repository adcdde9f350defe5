import re
from typing import Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGITS = re.compile(r"\D")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_RE.match(email.strip()) is not None


def normalize_cpf(cpf: str) -> str:
    """Strip punctuation, keeping only digits."""
    return _NON_DIGITS.sub("", cpf or "")


def is_valid_cpf(cpf: Optional[str]) -> bool:
    """11 digits after normalization and not a repeated single digit."""

    digits = normalize_cpf(cpf or "")
    if len(digits) != 11:
        return False
    return len(set(digits)) > 1


def format_cpf(cpf: str) -> str:
    """Render a CPF as 000.000.000-00.

    Raises:
        ValueError: if the value does not hold exactly 11 digits.
    """

    digits = normalize_cpf(cpf)
    if len(digits) != 11:
        raise ValueError("CPF must have 11 digits")
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 0:
        raise ValueError("size must not be negative")
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"
