"""
Input validation utilities
"""
import re
from typing import Iterable, List

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{7,14}$")


def validate_delivery_apps(apps: Iterable[str]) -> List[str]:
    """Strip names, drop blanks and repeats (first occurrence wins)"""
    cleaned = []
    for app in apps:
        if not isinstance(app, str):
            raise ValueError("Delivery app names must be strings")
        name = app.strip()
        if name and name not in cleaned:
            cleaned.append(name)
    if not cleaned:
        raise ValueError("At least one delivery app is required")
    return cleaned


def validate_phone(phone: str) -> str:
    """Validate an E.164-style phone number, removing spaces and dashes"""
    normalized = re.sub(r"[\s\-()]", "", phone or "")
    if not PHONE_PATTERN.match(normalized):
        raise ValueError("Invalid phone number")
    if not normalized.startswith("+"):
        normalized = f"+{normalized}"
    return normalized


def validate_price(price: float) -> float:
    """Validate price is positive"""
    if price is None or price <= 0:
        raise ValueError("Price must be positive")
    return price


def validate_non_blank(value: str, field: str = "Value") -> str:
    if value is None or not value.strip():
        raise ValueError(f"{field} is required")
    return value.strip()
