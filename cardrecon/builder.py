"""
Per-card record building.

Text extraction is authoritative; decoded contact codes only fill fields
the text left empty. Phones from codes are unioned in after classification.
"""

import logging
from dataclasses import replace
from typing import List, Sequence, Tuple

from .models import ContactCode, MachineCode, ParsedContact
from .phone import categorize_phones

logger = logging.getLogger(__name__)

BACKFILL_FIELDS = ("name", "company", "email", "website", "address", "services")

INSUFFICIENT_INFO = "insufficient information extracted"


class CardRecordBuilder:
    """Merge machine-code data into text-extracted card candidates."""

    def build(self, base: ParsedContact, machine_codes: Sequence[MachineCode] = ()) -> ParsedContact:
        """Combine one card candidate with the machine codes found beside it.

        Args:
            base: Candidate from text extraction
            machine_codes: Decoded codes of the same image, in order

        Returns:
            New record with gaps backfilled and codes attached as provenance
        """
        values = {name: getattr(base, name) for name in BACKFILL_FIELDS}
        phones = set(base.phones)
        landlines = set(base.landlines)

        for code in machine_codes:
            if not isinstance(code, ContactCode):
                continue
            info = code.extracted_info
            for name in BACKFILL_FIELDS:
                if not values[name] and getattr(info, name):
                    values[name] = getattr(info, name)
            code_phones, code_landlines = categorize_phones(info.phones)
            phones |= code_phones
            landlines |= code_landlines

        return replace(
            base,
            phones=phones,
            landlines=landlines,
            machine_codes=tuple(base.machine_codes) + tuple(machine_codes),
            **values,
        )

    def build_all(
        self,
        candidates: Sequence[ParsedContact],
        machine_codes: Sequence[MachineCode] = (),
    ) -> Tuple[List[ParsedContact], List[str]]:
        """Build every card of one image and apply the acceptance check.

        Returns:
            (accepted cards, error strings for failed or dropped cards)
        """
        cards: List[ParsedContact] = []
        errors: List[str] = []

        for number, candidate in enumerate(candidates, start=1):
            try:
                card = self.build(candidate, machine_codes)
            except (TypeError, ValueError) as e:
                errors.append(f"Error processing card {number}: {e}")
                logger.warning(f"Card {number} failed to build: {e}")
                continue

            if card.has_substantial_info():
                cards.append(card)
            else:
                errors.append(f"Card {number} skipped - {INSUFFICIENT_INFO}")
                logger.warning(f"Card {number} skipped: no name, company, email or phone")

        return cards, errors


def build_card(base: ParsedContact, machine_codes: Sequence[MachineCode] = ()) -> ParsedContact:
    """Convenience wrapper around CardRecordBuilder.build."""
    return CardRecordBuilder().build(base, machine_codes)
