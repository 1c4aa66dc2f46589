"""
Typed request and record structures exchanged with the document store.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, model_validator

from .exceptions import ValidationError


class BookingRequest(BaseModel):
    """A client's request for a meeting with a professional."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    professional: str = Field(min_length=1)
    start: int = Field(alias="from", ge=0)  # unix timestamp
    length: int = Field(gt=0)  # minutes

    @property
    def end(self) -> int:
        return self.start + self.length * 60

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "BookingRequest":
        """
        Validate a generic request payload.

        Raises:
            ValidationError: If a field is missing or has the wrong type
        """
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid booking request: {exc}") from exc


class Booking(BaseModel):
    """
    A committed booking as persisted in the booking collection.

    Invariant: end == start + length * 60.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    created_by: str = Field(alias="createdBy")
    professional: str
    start: int = Field(alias="from")
    end: int = Field(alias="to")
    length: int = Field(gt=0)
    day: str

    @model_validator(mode="after")
    def validate_span(self) -> "Booking":
        """Ensure the stored end matches the stored length."""
        if self.end != self.start + self.length * 60:
            raise ValueError(
                f"Booking end {self.end} does not match start {self.start} plus {self.length} minutes"
            )
        return self

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Booking":
        try:
            return cls.model_validate(dict(document))
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed booking document: {exc}") from exc

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
