"""
Export contacts to vCard 3.0, CSV and JSON text.

Pure formatting; nothing here touches the filesystem or network.
"""

import csv
import io
import json
from typing import List, Sequence

import vobject

from .models import ParsedContact

CSV_HEADERS = [
    "Name", "Company", "Email", "Mobile Phones", "Landlines",
    "Services", "Address", "Website", "Social",
]


def build_vcard(contact: ParsedContact) -> str:
    """Render one contact as a vCard 3.0 block (CRLF line endings).

    Absent fields produce no property, so a nameless contact is written
    without ``FN``/``N`` and serialized unvalidated.
    """
    vcard = vobject.vCard()

    if contact.name:
        parts = contact.name.split(" ")
        vcard.add("fn").value = contact.name
        vcard.add("n").value = vobject.vcard.Name(family=" ".join(parts[1:]), given=parts[0])

    if contact.company:
        vcard.add("org").value = [contact.company]
    if contact.services:
        vcard.add("title").value = contact.services
    if contact.email:
        vcard.add("email").value = contact.email
    if contact.website:
        vcard.add("url").value = contact.website
    if contact.address:
        vcard.add("adr").value = vobject.vcard.Address(street=contact.address)

    for phone_type, numbers in (("CELL", contact.phones), ("WORK", contact.landlines)):
        for phone in sorted(numbers):
            tel = vcard.add("tel")
            tel.value = phone
            tel.type_param = phone_type

    if contact.social:
        vcard.add("note").value = contact.social

    return vcard.serialize(validate=False).rstrip("\r\n")


class ContactExporter:
    """Serialize contact lists for download."""

    @staticmethod
    def to_vcf(contacts: Sequence[ParsedContact]) -> str:
        """Export to a multi-contact VCF document."""
        return "\r\n\r\n".join(build_vcard(contact) for contact in contacts)

    @staticmethod
    def to_csv(contacts: Sequence[ParsedContact]) -> str:
        """Export to CSV with every field quoted and '"' doubled."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)

        for contact in contacts:
            writer.writerow([
                contact.name or "",
                contact.company or "",
                contact.email or "",
                "; ".join(sorted(contact.phones)),
                "; ".join(sorted(contact.landlines)),
                contact.services or "",
                contact.address or "",
                contact.website or "",
                contact.social or "",
            ])

        return buffer.getvalue().rstrip("\n")

    @staticmethod
    def to_json(contacts: Sequence[ParsedContact], pretty: bool = True) -> str:
        """Export to JSON, dropping empty fields."""
        data: List[dict] = [contact.to_dict() for contact in contacts]
        return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)

    @classmethod
    def export(cls, contacts: Sequence[ParsedContact], fmt: str) -> str:
        """Dispatch on a format name (vcf, vcard, csv, json).

        Raises:
            ValueError: If the format is unknown
        """
        fmt = fmt.lower()
        if fmt in ("vcf", "vcard"):
            return cls.to_vcf(contacts)
        if fmt == "csv":
            return cls.to_csv(contacts)
        if fmt == "json":
            return cls.to_json(contacts)
        raise ValueError(f"Unsupported export format: {fmt}")
