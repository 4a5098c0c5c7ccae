"""Shared base model for API payloads (camelCase on the wire, snake_case in Python)."""

from typing import Any
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for every model exchanged with the RentCrowd API."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for a request body, dropping unset optional fields."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
