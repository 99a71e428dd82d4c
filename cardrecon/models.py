"""
Data model for the contact extraction engine.

ParsedContact is the canonical record for one physical card. Machine codes
(decoded QR/barcode payloads) are kept on the record as provenance.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from .phone import categorize_phones

SCALAR_FIELDS = ("name", "company", "email", "services", "address", "website", "social")


def clean_optional(value: Any) -> Optional[str]:
    """Trim a value to a non-empty string, or None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_frozenset(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if not isinstance(values, (list, tuple, set, frozenset)):
        values = [values]
    return frozenset(str(v).strip() for v in values if v and str(v).strip())


# =========================
# MACHINE CODES
# =========================

@dataclass
class PartialContact:
    """Contact fields recovered from a machine-code payload."""
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phones: List[str] = field(default_factory=list)
    website: Optional[str] = None
    address: Optional[str] = None
    services: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.name or self.company or self.email or self.phones
            or self.website or self.address or self.services
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "company": self.company,
            "email": self.email,
            "phones": list(self.phones),
            "website": self.website,
            "address": self.address,
            "services": self.services,
        }
        return {k: v for k, v in data.items() if v}


@dataclass(frozen=True)
class ContactCode:
    """A payload that decoded into contact fields (vCard, MeCard, tel:/mailto: text)."""
    raw: str
    extracted_info: PartialContact
    kind = "contact"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "data": self.raw, "extracted_info": self.extracted_info.to_dict()}


@dataclass(frozen=True)
class UrlCode:
    """A payload that is an absolute HTTP(S) URL."""
    raw: str
    url: str
    kind = "url"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "data": self.raw, "url": self.url}


@dataclass(frozen=True)
class TextCode:
    """An opaque payload with no recognised structure."""
    raw: str
    kind = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "data": self.raw}


MachineCode = Union[ContactCode, UrlCode, TextCode]


# =========================
# CONTACT RECORD
# =========================

@dataclass(frozen=True)
class ParsedContact:
    """Canonical contact record for one physical card.

    Optional text fields are either None or non-empty after trimming.
    ``email`` is always lowercase. A number is never present in both
    ``phones`` and ``landlines``; mobile classification wins.
    """
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phones: FrozenSet[str] = frozenset()
    landlines: FrozenSet[str] = frozenset()
    services: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    social: Optional[str] = None
    machine_codes: tuple = ()

    def __post_init__(self):
        for name in SCALAR_FIELDS:
            object.__setattr__(self, name, clean_optional(getattr(self, name)))
        if self.email:
            object.__setattr__(self, "email", self.email.lower())
        phones = _as_frozenset(self.phones)
        object.__setattr__(self, "phones", phones)
        object.__setattr__(self, "landlines", _as_frozenset(self.landlines) - phones)
        object.__setattr__(self, "machine_codes", tuple(self.machine_codes or ()))

    @property
    def all_phones(self) -> FrozenSet[str]:
        """Mobile and landline numbers together."""
        return self.phones | self.landlines

    def has_substantial_info(self) -> bool:
        """True if the record identifies someone (name, company, email or a number)."""
        return bool(self.name or self.company or self.email or self.phones or self.landlines)

    def to_dict(self, include_empty: bool = False) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary.

        Args:
            include_empty: Keep absent fields (as "" / []) instead of dropping them

        Returns:
            Dictionary with phone sets rendered as sorted lists
        """
        data: Dict[str, Any] = {
            "name": self.name,
            "company": self.company,
            "email": self.email,
            "phones": sorted(self.phones),
            "landlines": sorted(self.landlines),
            "services": self.services,
            "address": self.address,
            "website": self.website,
            "social": self.social,
            "machine_codes": [code.to_dict() for code in self.machine_codes],
        }
        if include_empty:
            return {k: ("" if v is None else v) for k, v in data.items()}
        return {k: v for k, v in data.items() if v}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedContact":
        """Build a record from a plain dictionary, ignoring unknown keys.

        Machine codes are not rebuilt; callers that need provenance keep
        the original objects.
        """
        if not isinstance(data, dict):
            return cls()
        kwargs = {name: data.get(name) for name in SCALAR_FIELDS}

        # the caller's mobile/landline split is not trusted
        raw_phones: List[Any] = []
        for key in ("phones", "landlines", "phone"):
            value = data.get(key)
            if isinstance(value, (list, tuple, set, frozenset)):
                raw_phones.extend(value)
            elif value is not None:
                raw_phones.append(value)
        phones, landlines = categorize_phones(raw_phones)

        return cls(
            phones=phones,
            landlines=landlines,
            **{k: v if isinstance(v, str) else None for k, v in kwargs.items()},
        )


# =========================
# RESULTS
# =========================

@dataclass
class DedupResult:
    """Outcome of a deduplication pass."""
    unique: List[ParsedContact] = field(default_factory=list)
    duplicates: List[List[ParsedContact]] = field(default_factory=list)
    merged: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unique": [c.to_dict() for c in self.unique],
            "duplicates": [[c.to_dict() for c in group] for group in self.duplicates],
            "merged": self.merged,
        }


@dataclass
class QualityReport:
    """Completeness score for one contact."""
    score: int = 0
    issues: List[str] = field(default_factory=list)
    completeness: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "issues": list(self.issues),
            "completeness": round(self.completeness, 2),
        }


@dataclass
class BatchResult:
    """Cards, per-card errors and machine-code count for one processing call."""
    cards: List[ParsedContact] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    machine_codes_found: int = 0
    total_processed: int = 0
    merged: int = 0
    processing_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cards": [c.to_dict() for c in self.cards],
            "errors": list(self.errors),
            "machine_codes_found": self.machine_codes_found,
            "total_processed": self.total_processed,
            "merged": self.merged,
            "processing_time_ms": self.processing_time_ms,
        }
