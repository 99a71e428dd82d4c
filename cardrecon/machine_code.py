"""
Machine-code (QR/barcode) payload decoding.

Classifies a decoded payload string as a contact, URL or opaque text and
recovers contact fields from vCard, MeCard and free text carrying
``tel:``/``mailto:`` schemes. Decoding never raises.
"""

import logging
import re
from typing import List, Optional, Tuple

import vobject

from .models import ContactCode, MachineCode, PartialContact, TextCode, UrlCode
from .phone import unique_normalized

logger = logging.getLogger(__name__)

VCARD_BEGIN = "BEGIN:VCARD"
MECARD_PREFIX = "MECARD:"

PATTERNS = {
    "url_payload": re.compile(r"^https?://\S+$", re.IGNORECASE),
    "phone_like": re.compile(r"(?:\+|00)?\d[\d\s().\-]{5,}\d"),
    # international-aware digit grouping; separators never cross a line
    "phone": re.compile(
        r"(?:(?:\+|00)[1-9]\d{0,3}[-. \t]?)?(?:\(?\d{1,4}\)?[-. \t]?)?\d{1,4}[-. \t]?\d{1,4}[-. \t]?\d{1,9}"
    ),
    "email": re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b"),
    "url": re.compile(r"https?://[^\s;,]+", re.IGNORECASE),
    "tel": re.compile(r"tel:([\d+\-\s().]+)", re.IGNORECASE),
    "mailto": re.compile(r"mailto:([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.IGNORECASE),
}

_UNESCAPED_SEMICOLON = re.compile(r"(?<!\\);")


# =========================
# VCARD
# =========================

def _joined(value, sep: str = " ") -> str:
    """Flatten a vobject field that may hold a string or a list of strings."""
    if isinstance(value, (list, tuple)):
        return sep.join(part.strip() for part in value if part and part.strip())
    return (value or "").strip()


def _first_text(card: vobject.base.Component, *names: str) -> Optional[str]:
    for name in names:
        for line in card.contents.get(name, []):
            text = _joined(line.value)
            if text:
                return text
    return None


def parse_vcard(payload: str) -> PartialContact:
    """Parse a vCard payload into contact fields.

    ``FN`` wins over the structured ``N`` name; the first ``EMAIL``,
    ``URL`` and ``ADR`` win; ``TITLE`` then ``ROLE`` then ``NOTE`` feed
    services; every ``TEL`` is normalized and de-duplicated. A payload
    vobject cannot read yields an empty contact.
    """
    contact = PartialContact()
    try:
        card = vobject.readOne(payload, ignoreUnreadable=True)
    except (vobject.base.VObjectError, StopIteration) as e:
        logger.debug(f"Unreadable vCard payload: {e}")
        return contact

    structured_name = None
    for line in card.contents.get("n", []):
        n = line.value
        structured_name = " ".join(
            part for part in (
                _joined(n.prefix), _joined(n.given), _joined(n.additional),
                _joined(n.family), _joined(n.suffix),
            ) if part
        )
        if structured_name:
            break
    contact.name = _first_text(card, "fn") or structured_name or None

    for line in card.contents.get("org", []):
        org = next((_joined(part) for part in line.value if _joined(part)), None)
        if org:
            contact.company = org
            break

    email = _first_text(card, "email")
    contact.email = email.lower() if email else None
    contact.website = _first_text(card, "url")

    for line in card.contents.get("adr", []):
        adr = line.value
        parts = [
            _joined(getattr(adr, field), ", ")
            for field in ("box", "extended", "street", "city", "region", "code", "country")
        ]
        address = ", ".join(part for part in parts if part)
        if address:
            contact.address = address
            break

    contact.services = _first_text(card, "title", "role", "note")
    contact.phones = unique_normalized(_joined(line.value) for line in card.contents.get("tel", []))
    return contact


# =========================
# MECARD
# =========================

def _decode_mecard_value(value: str) -> str:
    return re.sub(r"\\([\\;:,\"])", r"\1", value).strip()


def parse_mecard(payload: str) -> PartialContact:
    """Parse a MeCard payload (``MECARD:N:Doe,John;TEL:...;;``)."""
    contact = PartialContact()
    raw_phones: List[str] = []
    body = payload.strip()[len(MECARD_PREFIX):]

    for field in _UNESCAPED_SEMICOLON.split(body):
        field = field.strip()
        if ":" not in field:
            continue
        key, value = field.split(":", 1)
        key = key.strip().upper()
        if not value.strip():
            continue

        if key == "N":
            last, _, first = value.partition(",")
            name = f"{_decode_mecard_value(first)} {_decode_mecard_value(last)}".strip()
            contact.name = contact.name or name or None
        elif key == "ORG":
            contact.company = contact.company or _decode_mecard_value(value) or None
        elif key == "EMAIL":
            contact.email = contact.email or _decode_mecard_value(value).lower() or None
        elif key == "TEL":
            raw_phones.append(_decode_mecard_value(value))
        elif key == "URL":
            contact.website = contact.website or _decode_mecard_value(value) or None
        elif key == "ADR":
            contact.address = contact.address or _decode_mecard_value(value) or None
        elif key == "NOTE":
            contact.services = contact.services or _decode_mecard_value(value) or None

    contact.phones = unique_normalized(raw_phones)
    return contact


# =========================
# FREE TEXT
# =========================

def extract_contact_from_text(text: str) -> PartialContact:
    """Best-effort phone/email/URL extraction from an unstructured payload."""
    contact = PartialContact()
    candidates: List[str] = []

    for match in PATTERNS["tel"].finditer(text):
        candidates.append(match.group(1))
    candidates.extend(m.group(0) for m in PATTERNS["phone"].finditer(text))
    contact.phones = unique_normalized(candidates)

    mailto = PATTERNS["mailto"].search(text)
    email = PATTERNS["email"].search(text)
    if mailto:
        contact.email = mailto.group(1).lower()
    elif email:
        contact.email = email.group(0).lower()

    url = PATTERNS["url"].search(text)
    if url:
        contact.website = url.group(0)

    return contact


def looks_like_contact_text(payload: str) -> bool:
    lower = payload.lower()
    return "tel:" in lower or "mailto:" in lower or bool(PATTERNS["phone_like"].search(payload))


def suspected_format(payload: str) -> Optional[str]:
    """Name of the structured format a payload claims to be, if any."""
    head = payload.lstrip().upper()
    if head.startswith(VCARD_BEGIN):
        return "vCard"
    if head.startswith(MECARD_PREFIX):
        return "MeCard"
    return None


def decode_payload(payload: str) -> MachineCode:
    """Classify a decoded QR/barcode payload.

    Args:
        payload: Payload text as produced by the code reader

    Returns:
        ContactCode, UrlCode or TextCode. A contact-like payload with no
        recoverable field degrades to TextCode.
    """
    text = (payload or "").strip()
    fmt = suspected_format(text)

    if fmt == "vCard":
        info = parse_vcard(text)
    elif fmt == "MeCard":
        info = parse_mecard(text)
    elif PATTERNS["url_payload"].match(text):
        return UrlCode(raw=text, url=text)
    elif looks_like_contact_text(text):
        info = extract_contact_from_text(text)
    else:
        return TextCode(raw=text)

    if info.is_empty():
        logger.debug(f"No contact fields recovered from payload: {text[:60]!r}")
        return TextCode(raw=text)
    return ContactCode(raw=text, extracted_info=info)


def decode_payloads(payloads: List[str]) -> Tuple[List[MachineCode], List[str]]:
    """Decode several payloads and report the ones that failed their format.

    Returns:
        (codes, errors) with one error per vCard/MeCard payload that
        yielded no fields
    """
    codes: List[MachineCode] = []
    errors: List[str] = []

    for index, payload in enumerate(payloads, start=1):
        if not payload or not str(payload).strip():
            continue
        code = decode_payload(str(payload))
        fmt = suspected_format(str(payload))
        if fmt and isinstance(code, TextCode):
            errors.append(f"Machine code {index} could not be parsed as {fmt}")
            logger.warning(f"Machine code {index} looked like {fmt} but yielded no fields")
        codes.append(code)

    return codes, errors
