"""
Short Code Generator

Two unrelated concerns live here and are kept apart on purpose:

1. Deterministic codes: generate_code() turns the ShortURL's auto-increment id
   into a base62 string. Distinct ids always give distinct codes, so
   generated codes never collide with each other and need no lookup.

2. Random-scheme sizing: collision_probability() and recommend_code_length()
   apply the birthday bound to codes drawn uniformly at random. They are
   monitoring helpers for random schemes only and say nothing about
   generate_code(), whose collision probability is zero.

Custom codes chosen by users are checked by validate_custom_code(); their
uniqueness is checked against the database by URLShorteningService.
"""

import math
import re
from typing import Iterable, Optional

from shortlink.core.exceptions import ValidationError
from shortlink.core.setting import settings

BASE62_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
BASE62_LENGTH = len(BASE62_CHARS)
_BASE62_INDEX = {char: index for index, char in enumerate(BASE62_CHARS)}

CUSTOM_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

MIN_RECOMMENDED_LENGTH = 1
MAX_RECOMMENDED_LENGTH = 12


def generate_code(number: int) -> str:
    """
    Encode a non-negative id as a base62 string.

    Args:
        number: The ShortURL id

    Returns:
        Base62 encoded string, without padding

    Raises:
        ValueError: If number is negative

    Example:
        generate_code(0) -> "0"
        generate_code(61) -> "z"
        generate_code(62) -> "10"
    """
    if number < 0:
        raise ValueError(f"Cannot encode negative id: {number}")
    if number == 0:
        return BASE62_CHARS[0]

    digits = []
    while number > 0:
        number, remainder = divmod(number, BASE62_LENGTH)
        digits.append(BASE62_CHARS[remainder])

    return ''.join(reversed(digits))


def decode_code(encoded: str) -> int:
    """
    Decode a base62 string back to the id it was generated from.

    Raises:
        ValueError: If encoded is empty or contains a non-base62 character
    """
    if not encoded:
        raise ValueError("Cannot decode an empty code")

    number = 0
    for char in encoded:
        try:
            number = number * BASE62_LENGTH + _BASE62_INDEX[char]
        except KeyError:
            raise ValueError(f"Invalid character '{char}' in code '{encoded}'")
    return number


def validate_custom_code(
    candidate: str,
    reserved_words: Optional[Iterable[str]] = None,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> str:
    """
    Validate a user-chosen short code.

    Args:
        candidate: The requested code
        reserved_words: Words that cannot be claimed (default: settings.RESERVED_CODES)
        min_length: Minimum length (default: settings.CUSTOM_CODE_MIN_LENGTH)
        max_length: Maximum length (default: settings.CUSTOM_CODE_MAX_LENGTH)

    Returns:
        The candidate, unchanged, when it is acceptable

    Raises:
        ValidationError: On bad length, characters outside [A-Za-z0-9_-] or a reserved word
    """
    if reserved_words is None:
        reserved_words = settings.RESERVED_CODES
    if min_length is None:
        min_length = settings.CUSTOM_CODE_MIN_LENGTH
    if max_length is None:
        max_length = settings.CUSTOM_CODE_MAX_LENGTH

    if not candidate or not isinstance(candidate, str):
        raise ValidationError("Custom code is required", field="custom_code")

    if len(candidate) < min_length or len(candidate) > max_length:
        raise ValidationError(
            f"Custom code must be between {min_length} and {max_length} characters",
            field="custom_code"
        )

    if not CUSTOM_CODE_PATTERN.match(candidate):
        raise ValidationError(
            "Custom code may only contain letters, digits, '_' and '-'",
            field="custom_code"
        )

    if candidate.lower() in {word.lower() for word in reserved_words}:
        raise ValidationError(f"'{candidate}' is a reserved word", field="custom_code")

    return candidate


def collision_probability(code_length: int, population: int) -> float:
    """
    Birthday-bound probability that at least two of `population` random codes
    of `code_length` base62 characters are equal.

    p ~= 1 - exp(-n(n-1) / (2 * 62^L))

    Only meaningful for randomly drawn codes; ids encoded with
    generate_code() never collide.
    """
    if code_length < 1:
        raise ValueError("Code length must be at least 1")
    if population < 0:
        raise ValueError("Population cannot be negative")
    if population < 2:
        return 0.0

    space = float(BASE62_LENGTH) ** code_length
    exponent = -(population * (population - 1)) / (2.0 * space)
    # -expm1(x) == 1 - exp(x) without losing precision for tiny x
    return -math.expm1(exponent)


def recommend_code_length(projected_population: int, max_acceptable_probability: float) -> int:
    """
    Smallest random-code length whose collision probability for the projected
    population does not exceed the threshold.

    Lengths 1..12 are tried in order; 12 is returned when none qualifies.
    """
    if not 0 <= max_acceptable_probability <= 1:
        raise ValueError("Probability threshold must be between 0 and 1")

    for length in range(MIN_RECOMMENDED_LENGTH, MAX_RECOMMENDED_LENGTH + 1):
        if collision_probability(length, projected_population) <= max_acceptable_probability:
            return length
    return MAX_RECOMMENDED_LENGTH
