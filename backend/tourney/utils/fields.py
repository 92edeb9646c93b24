"""
Canonical parser for playing field numbers.

Handles both string ("1,2") and list ([1, 2] or ["1", "2"]) inputs so the
environment default and a tournament's stored override resolve the same way.
"""
import os
from typing import List, Optional, Union

DEFAULT_FIELD_NUMBERS = "1,2"


def parse_field_numbers(field_numbers: Optional[Union[str, List[Union[int, str]]]]) -> List[int]:
    """
    Normalize field_numbers to a list of unique positive ints, order preserved.

    - None or "" -> []
    - String (e.g. "1,2,3") -> split on commas, strip whitespace, drop empties -> [1, 2, 3]
    - List (e.g. ["1", 2]) -> coerce each to int, drop empties

    Raises ValueError on non-numeric or non-positive entries.
    """
    if field_numbers is None:
        return []
    if isinstance(field_numbers, str):
        raw = [x.strip() for x in field_numbers.split(",")]
    elif isinstance(field_numbers, list):
        raw = [str(x).strip() for x in field_numbers]
    else:
        return []

    result: List[int] = []
    for item in raw:
        if not item:
            continue
        try:
            number = int(item)
        except ValueError:
            raise ValueError(f"Invalid field number '{item}'")
        if number < 1:
            raise ValueError(f"Field number must be >= 1, got {number}")
        if number not in result:
            result.append(number)
    return result


def default_field_numbers() -> List[int]:
    """Field numbers configured through FIELD_NUMBERS (defaults to 1,2)."""
    return parse_field_numbers(os.getenv("FIELD_NUMBERS", DEFAULT_FIELD_NUMBERS)) or [1, 2]


def resolve_field_numbers(tournament_field_numbers: Optional[List[int]]) -> List[int]:
    """A tournament's own field list wins over the environment default."""
    fields = parse_field_numbers(tournament_field_numbers)
    return fields or default_field_numbers()
