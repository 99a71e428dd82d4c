"""
Batch deduplication with fuzzy matching.

Records whose similarity reaches the threshold are folded into the first
record of their group. Passes repeat until one pass merges nothing, so
deduplicating an already deduplicated list is a no-op.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from .models import SCALAR_FIELDS, DedupResult, ParsedContact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityConfig:
    """Thresholds for duplicate detection.

    Attributes:
        threshold: Minimum averaged score for two records to merge
        name_threshold: Name similarity must exceed this to count
        company_threshold: Company similarity must exceed this to count
    """
    threshold: float = 0.7
    name_threshold: float = 0.8
    company_threshold: float = 0.7


DEFAULT_SIMILARITY = SimilarityConfig()


def _normalize_text(value: str) -> str:
    return " ".join(value.lower().split())


def string_similarity(first: str, second: str) -> float:
    """Levenshtein ratio ``1 - distance / max(len)`` on case-folded text."""
    a, b = _normalize_text(first or ""), _normalize_text(second or "")
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def contact_similarity(
    first: ParsedContact,
    second: ParsedContact,
    config: SimilarityConfig = DEFAULT_SIMILARITY,
) -> float:
    """Average of the comparable component scores, 0 if none is comparable.

    Components: name (counted above name_threshold), exact email,
    any shared phone, company (counted above company_threshold).
    """
    matches = 0.0
    total = 0

    if first.name and second.name:
        total += 1
        similarity = string_similarity(first.name, second.name)
        if similarity > config.name_threshold:
            matches += similarity

    if first.email and second.email:
        total += 1
        if first.email.lower() == second.email.lower():
            matches += 1

    phones_a, phones_b = first.all_phones, second.all_phones
    if phones_a and phones_b:
        total += 1
        if phones_a & phones_b:
            matches += 1

    if first.company and second.company:
        total += 1
        similarity = string_similarity(first.company, second.company)
        if similarity > config.company_threshold:
            matches += similarity

    return matches / total if total else 0.0


def _pick(current: Optional[str], other: Optional[str]) -> Optional[str]:
    if not current:
        return other
    if other and len(other) > len(current):
        return other
    return current


def merge_contacts(target: ParsedContact, source: ParsedContact) -> ParsedContact:
    """Combine two records into a new one.

    Scalars keep the non-empty value, the longer one when both exist;
    phone sets are unioned and machine codes concatenated.
    """
    values = {name: _pick(getattr(target, name), getattr(source, name)) for name in SCALAR_FIELDS}
    phones = target.phones | source.phones
    return ParsedContact(
        phones=phones,
        landlines=(target.landlines | source.landlines) - phones,
        machine_codes=target.machine_codes + source.machine_codes,
        **values,
    )


def _merge_pass(
    groups: List[Tuple[ParsedContact, List[ParsedContact]]],
    config: SimilarityConfig,
) -> Tuple[List[Tuple[ParsedContact, List[ParsedContact]]], int]:
    output = []
    processed = set()
    merged = 0

    for i, (record, members) in enumerate(groups):
        if i in processed:
            continue
        processed.add(i)
        working, working_members = record, list(members)

        for j in range(i + 1, len(groups)):
            if j in processed:
                continue
            other, other_members = groups[j]
            if contact_similarity(working, other, config) >= config.threshold:
                working = merge_contacts(working, other)
                working_members.extend(other_members)
                processed.add(j)
                merged += 1

        output.append((working, working_members))

    return output, merged


def deduplicate_contacts(
    contacts: Sequence[ParsedContact],
    config: SimilarityConfig = DEFAULT_SIMILARITY,
) -> DedupResult:
    """Merge duplicate detections into unique contacts.

    Args:
        contacts: Accepted records of one image or batch, in order
        config: Similarity thresholds

    Returns:
        DedupResult with unique records (first-seen order), the original
        records of every merged group and the number of absorbed records
    """
    groups = [(contact, [contact]) for contact in contacts]
    total_merged = 0

    while True:
        groups, merged = _merge_pass(groups, config)
        total_merged += merged
        if not merged:
            break

    if total_merged:
        logger.info(f"Merged {total_merged} duplicate record(s) into {len(groups)} contact(s)")

    return DedupResult(
        unique=[record for record, _ in groups],
        duplicates=[members for _, members in groups if len(members) > 1],
        merged=total_merged,
    )
