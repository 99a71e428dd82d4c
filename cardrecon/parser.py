"""
Contact extraction from vision-model output.

Two modes:
- structured: the model returned JSON card objects; fields are cleaned
  and phones normalized/classified.
- free text: the model returned plain text; lines are claimed greedily by
  an ordered list of field strategies.
"""

import json
import logging
import re
from collections import namedtuple
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .exceptions import VisionResponseError
from .models import ParsedContact
from .phone import categorize_phones, normalize_phone
from .schemas import CardResponse

logger = logging.getLogger(__name__)

VisionResponse = Union[str, Dict[str, Any], List[Any]]

COMPANY_KEYWORDS = (
    "company", "corp", "corporation", "inc", "incorporated", "ltd", "limited",
    "llc", "llp", "technologies", "tech", "solutions", "services", "group",
    "associates", "partners", "consulting", "studio", "agency", "firm",
    "enterprises", "industries",
)

TITLE_KEYWORDS = (
    "manager", "director", "ceo", "cto", "cfo", "coo", "founder", "co-founder",
    "developer", "designer", "engineer", "consultant", "analyst", "specialist",
    "coordinator", "executive", "president", "vice", "senior", "junior", "lead",
    "head", "chief", "officer", "partner", "agent", "architect", "owner",
)

SERVICE_KEYWORDS = ("services", "solutions", "consulting", "development", "design", "marketing")

ADDRESS_KEYWORDS = (
    "street", "st", "avenue", "ave", "road", "rd", "boulevard", "blvd", "drive",
    "dr", "lane", "ln", "way", "place", "pl", "court", "ct", "suite", "ste",
    "floor", "building", "city", "state", "zip", "postal",
)


def _keyword_pattern(words) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


PATTERNS = {
    "email": re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
    "email_exact": re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
    # OCR '+' signs are unreliable; candidates start at a digit
    "phone": re.compile(r"\(?\d[\d().\- \t]{5,}\d"),
    "website": re.compile(
        r"(?:https?://|www\.)[^\s,;]+|\b[a-z0-9-]+\.(?:com|net|org|io|co|biz|info|in|uk|de)(?:/\S*)?\b",
        re.IGNORECASE,
    ),
    "social": re.compile(
        r"(?:linkedin\.com/(?:in|company)/\S+|(?:twitter|x|instagram|facebook)\.com/\S+|(?<![\w.])@[A-Za-z0-9_]{2,})",
        re.IGNORECASE,
    ),
    "name": re.compile(r"^[A-Z][a-z'\-]+(?:\s+(?:[A-Z]\.?|[A-Z][a-z'\-]+)){1,2}$"),
    "plain_name": re.compile(r"^[A-Za-z][A-Za-z.'\-]*(?:\s+[A-Za-z][A-Za-z.'\-]*){1,3}$"),
    "long_capitalized": re.compile(r"^[A-Z][A-Za-z\s&.,'\-]+$"),
    "company": _keyword_pattern(COMPANY_KEYWORDS),
    "title": _keyword_pattern(TITLE_KEYWORDS),
    "service": _keyword_pattern(SERVICE_KEYWORDS),
    "address": _keyword_pattern(ADDRESS_KEYWORDS),
    "zip": re.compile(r"\d{5}"),
    "zip_plus4": re.compile(r"\b\d{5}-\d{4}\b"),
    "state_zip": re.compile(r",\s*[A-Z]{2}\s*\d"),
}


def clean_field(value: Any, kind: str = "text") -> Optional[str]:
    """Clean a single extracted value.

    Args:
        value: Raw value from the model or OCR
        kind: One of text, email, url, phone

    Returns:
        Cleaned value, or None when nothing usable remains
    """
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        return None

    if kind == "email":
        cleaned = cleaned.lower()
        if not PATTERNS["email_exact"].match(cleaned):
            return None
    elif kind == "url":
        if not cleaned.lower().startswith("http"):
            cleaned = "https://" + cleaned
    elif kind == "phone":
        return normalize_phone(cleaned)

    return cleaned


def extract_json_payload(text: str) -> Optional[List[Any]]:
    """Recover the card list from a model response.

    Markdown code fences are stripped; a JSON array is preferred, a lone
    object is wrapped in a list.

    Returns:
        List of decoded items, or None if the text holds no JSON
    """
    stripped = re.sub(r"```(?:json)?\s*", "", text).strip()

    candidates = [stripped]
    array_match = re.search(r"\[[\s\S]*\]", stripped)
    if array_match:
        candidates.append(array_match.group(0))
    object_match = re.search(r"\{[\s\S]*\}", stripped)
    if object_match:
        candidates.append(object_match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            cards = data.get("cards")
            return cards if isinstance(cards, list) else [data]

    return None


# =========================
# FREE-TEXT STRATEGIES
# =========================

# field: target field; predicate(line, found) -> bool; collect: take every
# match instead of the first; window: only the first N lines are eligible
FieldStrategy = namedtuple("FieldStrategy", ["field", "predicate", "collect", "window"])


def _is_name_line(line: str, found: Dict[str, Any]) -> bool:
    return (
        bool(PATTERNS["name"].match(line))
        and not PATTERNS["company"].search(line)
        and not PATTERNS["title"].search(line)
    )


def _is_plain_name_line(line: str, found: Dict[str, Any]) -> bool:
    return (
        bool(PATTERNS["plain_name"].match(line))
        and not PATTERNS["company"].search(line)
        and not PATTERNS["title"].search(line)
    )


def _is_company_line(line: str, found: Dict[str, Any]) -> bool:
    return bool(PATTERNS["company"].search(line))


def _is_long_capitalized_line(line: str, found: Dict[str, Any]) -> bool:
    name = found.get("name") or ""
    return bool(PATTERNS["long_capitalized"].match(line)) and len(line) > len(name) + 5


def _is_services_line(line: str, found: Dict[str, Any]) -> bool:
    return bool(PATTERNS["title"].search(line) or PATTERNS["service"].search(line))


def _is_address_line(line: str, found: Dict[str, Any]) -> bool:
    return bool(
        PATTERNS["address"].search(line)
        or PATTERNS["zip"].search(line)
        or PATTERNS["state_zip"].search(line)
    )


def _is_street_line(line: str) -> bool:
    return bool(
        PATTERNS["address"].search(line)
        or PATTERNS["state_zip"].search(line)
        or PATTERNS["zip_plus4"].search(line)
    )


def _phone_candidates(line: str) -> List[str]:
    """Phone-shaped runs of a line, ignoring emails and ZIP+4 postcodes."""
    scan = PATTERNS["zip_plus4"].sub("|", PATTERNS["email"].sub("|", line))
    return [m.group(0) for m in PATTERNS["phone"].finditer(scan) if normalize_phone(m.group(0))]


FREE_TEXT_STRATEGIES = (
    FieldStrategy("name", _is_name_line, False, 5),
    FieldStrategy("name", _is_plain_name_line, False, 5),
    FieldStrategy("company", _is_company_line, False, None),
    FieldStrategy("company", _is_long_capitalized_line, False, None),
    FieldStrategy("services", _is_services_line, False, None),
    FieldStrategy("address", _is_address_line, True, None),
)


class ContactParser:
    """Turns vision-model output into card candidates."""

    def __init__(self, strategies=FREE_TEXT_STRATEGIES):
        self.strategies = strategies

    # =========================
    # PIPELINE API
    # =========================

    def parse_response(self, response: VisionResponse, source: Optional[str] = None) -> List[ParsedContact]:
        """Parse a full vision response into one candidate per detected card.

        Args:
            response: Raw response text, or already-decoded JSON
            source: Image name, for error details

        Returns:
            Card candidates in response order (not yet acceptance-checked)

        Raises:
            VisionResponseError: If the response is empty
        """
        if isinstance(response, (dict, list)):
            items = response if isinstance(response, list) else [response]
            if isinstance(response, dict) and isinstance(response.get("cards"), list):
                items = response["cards"]
        else:
            text = (response or "").strip() if isinstance(response, str) else ""
            if not text:
                raise VisionResponseError("Empty response from vision model", source)
            items = extract_json_payload(text)
            if items is None:
                logger.info("No JSON in vision response, using free-text extraction")
                return [self.parse_text(text)]

        candidates = []
        for item in items:
            if isinstance(item, dict):
                candidates.append(self.parse_structured(item))
            elif isinstance(item, str):
                candidates.append(self.parse_text(item))
            else:
                logger.debug(f"Ignoring card entry of type {type(item).__name__}")
                candidates.append(ParsedContact())

        logger.debug(f"Parsed {len(candidates)} card candidate(s)")
        return candidates

    # =========================
    # STRUCTURED MODE
    # =========================

    def parse_structured(self, data: Dict[str, Any]) -> ParsedContact:
        """Clean one JSON card object."""
        try:
            card = CardResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Card object failed validation: {e.error_count()} error(s)")
            return ParsedContact()

        phones, landlines = categorize_phones(card.all_phones)

        return ParsedContact(
            name=clean_field(card.name),
            company=clean_field(card.company),
            email=clean_field(card.email, "email"),
            phones=phones,
            landlines=landlines,
            services=clean_field(card.services) or clean_field(card.title),
            address=clean_field(card.address),
            website=clean_field(card.website, "url"),
            social=clean_field(card.social),
        )

    # =========================
    # FREE-TEXT MODE
    # =========================

    def parse_text(self, text: str) -> ParsedContact:
        """Heuristically extract one card from recognized text."""
        lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
        claimed = set()
        found: Dict[str, Any] = {}

        email = None
        raw_phones: List[str] = []
        for index, line in enumerate(lines):
            email_match = PATTERNS["email"].search(line)
            if email_match:
                email = email or email_match.group(0)
                claimed.add(index)
            line_phones = _phone_candidates(line)
            if line_phones:
                raw_phones.extend(line_phones)
                # an address line keeps its text for the address strategy
                if not _is_street_line(line):
                    claimed.add(index)

        social = self._claim_first(lines, claimed, PATTERNS["social"])
        website = self._claim_first(lines, claimed, PATTERNS["website"])

        for strategy in self.strategies:
            if found.get(strategy.field):
                continue
            eligible = [
                (i, line) for i, line in enumerate(lines)
                if i not in claimed and (strategy.window is None or i < strategy.window)
            ]
            matches = [(i, line) for i, line in eligible if strategy.predicate(line, found)]
            if not matches:
                continue
            if not strategy.collect:
                matches = matches[:1]
            claimed.update(i for i, _ in matches)
            found[strategy.field] = ", ".join(line for _, line in matches)
            logger.debug(f"Free text {strategy.field}: {found[strategy.field]!r}")

        phones, landlines = categorize_phones(raw_phones)

        return ParsedContact(
            name=found.get("name"),
            company=found.get("company"),
            email=clean_field(email, "email"),
            phones=phones,
            landlines=landlines,
            services=found.get("services"),
            address=found.get("address"),
            website=clean_field(website, "url"),
            social=social,
        )

    @staticmethod
    def _claim_first(lines: List[str], claimed: set, pattern: re.Pattern) -> Optional[str]:
        for index, line in enumerate(lines):
            if index in claimed:
                continue
            match = pattern.search(line)
            if match:
                claimed.add(index)
                return match.group(0)
        return None
