from typing import Any, Optional, TypeVar

T = TypeVar("T")


def normalize_location(location: Optional[str]) -> Optional[str]:
    """
    Azure accepts both the display name and the name of a location: "West Europe" and "westeurope".
    Both are compared by their normalized form.
    """
    return location.replace(" ", "").lower() if location is not None else None


def case_insensitive_eq(left: T, right: T) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left.lower() == right.lower()
    else:
        return left == right


def is_empty(value: Any) -> bool:
    # absent, empty map and empty list are the same for a declared attribute
    return value is None or value == {} or value == []
