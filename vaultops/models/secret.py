"""Secret store data contracts.

Paths are normalized to slash-separated segments without leading or
trailing slashes. Credential secrets are held as SecretStr so they never
show up in repr, logs or model dumps.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

_BLOCKED_SEGMENTS = {".", ".."}


def normalize_path(value: str, *, allow_empty: bool = False) -> str:
    raw = (value or "").strip().replace("\\", "/").strip("/")
    if not raw:
        if allow_empty:
            return ""
        raise ValueError("path must not be empty")
    parts = raw.split("/")
    if any(p == "" for p in parts):
        raise ValueError("path has empty segments")
    if any(p in _BLOCKED_SEGMENTS for p in parts):
        raise ValueError("self-reference or parent traversal is not allowed")
    return raw


class OutputType(str, Enum):
    CREDENTIAL = "credential"
    MAPPING = "mapping"


class SecretPath(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    engine: str
    path: str = ""

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, value: str) -> str:
        return normalize_path(value)

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        return normalize_path(value, allow_empty=True)

    @property
    def segments(self) -> list[str]:
        return self.path.split("/") if self.path else []

    @property
    def name(self) -> str:
        segments = self.segments
        return segments[-1] if segments else ""

    @property
    def parent(self) -> str:
        return "/".join(self.segments[:-1])

    def __str__(self) -> str:
        return f"{self.engine}/{self.path}" if self.path else self.engine


class Credential(BaseModel):
    """Username/secret pair materialized from one bundle key."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    username: str = Field(min_length=1)
    password: SecretStr

    def get_secret_value(self) -> str:
        return self.password.get_secret_value()


class AppRoleCredential(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    role_id: str = Field(min_length=1)
    secret_id: SecretStr


class CredentialResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["credential"] = "credential"
    path: str
    version: Optional[int] = None
    credential: Credential


class MappingResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["mapping"] = "mapping"
    path: str
    version: Optional[int] = None
    created_time: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)


SecretResult = Annotated[Union[CredentialResult, MappingResult], Field(discriminator="kind")]


class SecretVersion(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    version: int = Field(ge=1)
    created_time: Optional[datetime] = None
    deletion_time: Optional[datetime] = None
    destroyed: bool = False

    @field_validator("created_time", "deletion_time", mode="before")
    @classmethod
    def blank_time_is_none(cls, value: Any) -> Any:
        # The store reports "" for versions that were never deleted.
        if value == "":
            return None
        return value

    @property
    def is_live(self) -> bool:
        return self.deletion_time is None and not self.destroyed


class SecretMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    current_version: int = Field(ge=0)
    oldest_version: int = Field(ge=0)
    max_versions: int = Field(default=0, ge=0)
    created_time: Optional[datetime] = None
    updated_time: Optional[datetime] = None
    versions: list[SecretVersion] = Field(default_factory=list)

    @field_validator("versions")
    @classmethod
    def sort_versions(cls, versions: list[SecretVersion]) -> list[SecretVersion]:
        return sorted(versions, key=lambda v: v.version)

    def version(self, number: int) -> Optional[SecretVersion]:
        for item in self.versions:
            if item.version == number:
                return item
        return None
