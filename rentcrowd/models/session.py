"""Durable session snapshot."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from rentcrowd.models.user import User


class PersistedSession(BaseModel):
    """
    The only part of the session written to durable storage.

    Loading flags, errors, the profile and the pending verification id
    are deliberately absent.
    """
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    user: Optional[User] = None
    is_authenticated: bool = Field(False, alias="isAuthenticated")


class PersistedEnvelope(BaseModel):
    """On-disk wrapper: {"state": {...}, "version": 0}."""
    state: PersistedSession = Field(default_factory=PersistedSession)
    version: int = 0

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "PersistedEnvelope":
        if not raw:
            return cls()
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def cleared(self) -> "PersistedEnvelope":
        """Copy with token and authentication flag dropped, user kept."""
        state = self.state.model_copy(update={"token": None, "is_authenticated": False})
        return self.model_copy(update={"state": state})

