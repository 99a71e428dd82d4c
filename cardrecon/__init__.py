"""
Contact extraction and reconciliation engine for business cards.
"""

from .builder import CardRecordBuilder, build_card
from .dedup import SimilarityConfig, contact_similarity, deduplicate_contacts, merge_contacts
from .exceptions import CardEngineError, VisionCallError, VisionResponseError
from .exporter import ContactExporter
from .machine_code import decode_payload, decode_payloads
from .models import (
    BatchResult,
    ContactCode,
    DedupResult,
    ParsedContact,
    PartialContact,
    QualityReport,
    TextCode,
    UrlCode,
)
from .parser import ContactParser
from .phone import categorize_phones, classify_phone, normalize_phone
from .pipeline import CardPipeline, ImageJob
from .quality import assess_contact_quality

__version__ = "1.0.0"

__all__ = [
    "BatchResult",
    "CardEngineError",
    "CardPipeline",
    "CardRecordBuilder",
    "ContactCode",
    "ContactExporter",
    "ContactParser",
    "DedupResult",
    "ImageJob",
    "ParsedContact",
    "PartialContact",
    "QualityReport",
    "SimilarityConfig",
    "TextCode",
    "UrlCode",
    "VisionCallError",
    "VisionResponseError",
    "assess_contact_quality",
    "build_card",
    "categorize_phones",
    "classify_phone",
    "contact_similarity",
    "decode_payload",
    "decode_payloads",
    "deduplicate_contacts",
    "merge_contacts",
    "normalize_phone",
]
