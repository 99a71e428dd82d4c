"""
Contract for one card in a vision-model response.

Fields are all optional; unknown keys are ignored and values of the wrong
shape are treated as missing rather than rejected.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TEXT_FIELDS = ("name", "company", "email", "services", "title", "address", "website", "social")


def _coerce_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _coerce_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    items = [_coerce_text(v) for v in value]
    return [item for item in items if item]


class CardResponse(BaseModel):
    """One card as described by the vision model."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    card_number: Optional[int] = Field(default=None, alias="cardNumber")
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: List[str] = Field(default_factory=list)
    phones: List[str] = Field(default_factory=list)
    landlines: List[str] = Field(default_factory=list)
    services: Optional[str] = None
    title: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    social: Optional[str] = None
    confidence: Optional[str] = None

    @field_validator(*TEXT_FIELDS, "confidence", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("phone", "phones", "landlines", mode="before")
    @classmethod
    def _text_list(cls, value: Any) -> List[str]:
        return _coerce_text_list(value)

    @field_validator("card_number", mode="before")
    @classmethod
    def _card_number(cls, value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @property
    def all_phones(self) -> List[str]:
        """Every phone-like string, regardless of how the model split them."""
        return [*self.phones, *self.landlines, *self.phone]

    def has_fields(self) -> bool:
        return any(getattr(self, name) for name in TEXT_FIELDS) or bool(self.all_phones)
