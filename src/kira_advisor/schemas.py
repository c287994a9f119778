"""Request shapes accepted by the receipt and chat entry points."""

import base64
import binascii
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from kira_advisor.errors import ValidationError

RequestT = TypeVar("RequestT", bound=BaseModel)


class ReceiptRequest(BaseModel):
    """Process one receipt image for a user."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(alias="userId", min_length=1)
    image_bytes: bytes = Field(alias="imageBytes", min_length=1)

    @field_validator("image_bytes", mode="before")
    @classmethod
    def decode_base64(cls, value: Any) -> Any:
        # JSON callers send the image as base64 text.
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError("imageBytes must be raw bytes or base64 text") from e
        return value


class ChatRequest(BaseModel):
    """One chat turn."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(alias="userId", min_length=1)
    message: str = Field(min_length=1)
    attachment_id: str | None = Field(default=None, alias="attachmentId")


def parse_request(model: type[RequestT], payload: Any) -> RequestT:
    """Validate a raw payload, raising the advisor's ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ValidationError(
            f"Invalid request: {', '.join(fields)}",
            details={"fields": fields},
        ) from e
