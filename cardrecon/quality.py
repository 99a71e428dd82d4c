"""
Completeness scoring for extracted contacts.
"""

import re

from .models import ParsedContact, QualityReport

EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_SCHEME = re.compile(r"^https?://", re.IGNORECASE)

TRACKED_FIELDS = 7  # name, company, email, phones, services, address, website


def assess_contact_quality(contact: ParsedContact) -> QualityReport:
    """Score a contact 0-100 by field presence and shape.

    Args:
        contact: Record to assess

    Returns:
        QualityReport with score, informational issues and completeness (%)
    """
    issues = []
    score = 0
    present = 0

    if contact.name:
        score += 25
        present += 1
        if len(contact.name) < 3:
            issues.append("Name seems too short")
    else:
        issues.append("Missing name")

    if contact.email:
        score += 20
        present += 1
        if not EMAIL_SHAPE.match(contact.email):
            issues.append("Email format may be incorrect")
            score -= 5
    else:
        issues.append("Missing email")

    if contact.phones or contact.landlines:
        score += 20
        present += 1
        if any(len(re.sub(r"\D", "", phone)) < 7 for phone in contact.all_phones):
            issues.append("Some phone numbers seem too short")
            score -= 5
    else:
        issues.append("Missing phone numbers")

    if contact.company:
        score += 15
        present += 1

    if contact.services:
        score += 10
        present += 1

    if contact.address:
        score += 5
        present += 1
        if len(contact.address) < 10:
            issues.append("Address seems incomplete")
            score -= 2

    if contact.website:
        score += 5
        present += 1
        if not URL_SCHEME.match(contact.website):
            issues.append("Website URL format may be incorrect")
            score -= 2

    completeness = present / TRACKED_FIELDS * 100
    if completeness > 80:
        score += 10
    elif completeness > 60:
        score += 5

    return QualityReport(score=max(0, min(100, score)), issues=issues, completeness=completeness)
