"""
Phone number normalization and mobile/landline classification.

All functions are pure. Classification is a per-country heuristic table,
not a numbering-plan lookup; misclassification of edge cases is expected.
"""

import logging
import re
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 7

# OCR confuses O/o with 0 and I/l/| with 1 inside digit runs
_ZERO_TYPO = re.compile(r"(?<=\d)[Oo](?=\d)")
_ONE_TYPO = re.compile(r"(?<=\d)[Il|](?=\d)")
_NON_PHONE_CHARS = re.compile(r"[^\d+]")


class PhoneClass(str, Enum):
    MOBILE = "mobile"
    LANDLINE = "landline"


def normalize_phone(raw: Optional[str], min_digits: int = MIN_PHONE_DIGITS) -> Optional[str]:
    """Canonicalize a raw phone string.

    Separators are dropped, a leading ``00`` becomes ``+`` and only a
    leading ``+`` is kept.

    Args:
        raw: Phone number as found on the card
        min_digits: Minimum digit count for a plausible number

    Returns:
        Digits with an optional leading '+', or None if implausible
    """
    if not raw:
        return None

    text = _ONE_TYPO.sub("1", _ZERO_TYPO.sub("0", str(raw).strip()))
    cleaned = _NON_PHONE_CHARS.sub("", text)
    international = cleaned.startswith("+")
    digits = cleaned.replace("+", "")

    if not international and digits.startswith("00"):
        international = True
        digits = digits[2:]

    if len(digits) < min_digits:
        return None

    return ("+" if international else "") + digits


# =========================
# CLASSIFICATION TABLE
# =========================

def _india(subscriber: str) -> bool:
    return len(subscriber) == 10 and subscriber[0] in "6789"


def _united_kingdom(subscriber: str) -> bool:
    return subscriber.lstrip("0").startswith("7")


GERMAN_MOBILE_PREFIXES = ("15", "16", "17")


def _germany(subscriber: str) -> bool:
    return subscriber.lstrip("0")[:2] in GERMAN_MOBILE_PREFIXES


# (country prefix, is-mobile test on the subscriber digits), checked in order
CLASSIFIERS: Tuple[Tuple[str, Callable[[str], bool]], ...] = (
    ("+91", _india),
    ("+44", _united_kingdom),
    ("+49", _germany),
)


def _generic_is_mobile(normalized: str) -> bool:
    if normalized.startswith("+"):
        return True
    if len(normalized) > 10:
        # country code written without '+'
        return True
    if len(normalized) == 10:
        return normalized[0] in "6789"
    return False


def classify_phone(normalized: str) -> PhoneClass:
    """Classify a normalized number as mobile or landline.

    Args:
        normalized: Output of normalize_phone

    Returns:
        PhoneClass.MOBILE or PhoneClass.LANDLINE
    """
    for prefix, is_mobile in CLASSIFIERS:
        if normalized.startswith(prefix):
            subscriber = normalized[len(prefix):]
            return PhoneClass.MOBILE if is_mobile(subscriber) else PhoneClass.LANDLINE

    return PhoneClass.MOBILE if _generic_is_mobile(normalized) else PhoneClass.LANDLINE


def categorize_phones(raw_phones: Iterable[str]) -> Tuple[Set[str], Set[str]]:
    """Normalize and split numbers into (mobiles, landlines).

    Implausible numbers are dropped; duplicates collapse.
    """
    mobiles: Set[str] = set()
    landlines: Set[str] = set()

    for raw in raw_phones:
        normalized = normalize_phone(raw)
        if not normalized:
            logger.debug(f"Dropping implausible phone candidate: {raw!r}")
            continue
        if classify_phone(normalized) is PhoneClass.MOBILE:
            mobiles.add(normalized)
        else:
            landlines.add(normalized)

    return mobiles, landlines


def unique_normalized(raw_phones: Iterable[str]) -> List[str]:
    """Normalize numbers, keeping first-seen order and dropping repeats."""
    seen: List[str] = []
    for raw in raw_phones:
        normalized = normalize_phone(raw)
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen
