"""Pydantic models describing mailcompose configuration documents."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as _PydanticValidationError
from pydantic import model_validator

from ..core.contexts import ContextPolicy
from ..core.disposition import SentBehavior
from ..core.policy import DEFAULT_POLICY, CryptoPolicy


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


_CONDITION_FIELDS = {"header", "from", "to", "cc", "subject", "folder", "flag"}
_COMPARATORS = {"equals", "contains", "regex"}


def _ensure_dict(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValidationError(f"{name} expected mapping")
    return value


def _normalise_condition(value: Dict[str, Any]) -> Dict[str, Any]:
    if len(value) != 1:
        raise ValidationError("condition must have exactly one entry")
    field, payload = next(iter(value.items()))
    if field not in _CONDITION_FIELDS:
        raise ValidationError(f"unsupported condition field '{field}'")
    if isinstance(payload, dict):
        if not _COMPARATORS.intersection(payload):
            raise ValidationError(f"condition '{field}' needs one of {sorted(_COMPARATORS)}")
        if field == "header" and "name" not in payload:
            raise ValidationError("header condition requires 'name'")
        if "regex" in payload:
            try:
                re.compile(str(payload["regex"]))
            except re.error as exc:
                raise ValidationError(f"condition '{field}' has an invalid regex: {exc}") from exc
        return {field: dict(payload)}
    return {field: {"equals": payload}}


class PathsConfig(BaseModel):
    """Filesystem layout used by the runtime."""

    model_config = ConfigDict(extra="forbid")

    spool_dir: str


class ImapSettings(BaseModel):
    """Connection parameters of the IMAP-backed message store."""

    model_config = ConfigDict(extra="forbid")

    host: str
    username: str
    password: Optional[str] = None
    password_env: Optional[str] = None
    port: int = Field(default=993, gt=0)
    ssl: bool = True
    folders: List[str] = Field(default_factory=lambda: ["INBOX", "Sent", "Drafts"])


class FolderConfig(BaseModel):
    """Drafts, sent and trash folders of an identity."""

    model_config = ConfigDict(extra="forbid")

    drafts: str = "/Drafts"
    sent: str = "/Sent"
    trash: str = "/Trash"


class ContextMatch(BaseModel):
    """Clause set deciding whether a context applies to an original message."""

    model_config = ConfigDict(extra="forbid")

    any: List[Dict[str, Any]] = Field(default_factory=list)
    all: List[Dict[str, Any]] = Field(default_factory=list)
    none: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _normalise(self) -> "ContextMatch":
        if not self.any and not self.all and not self.none:
            raise ValidationError("match must define at least one clause")
        self.any = [_normalise_condition(_ensure_dict(item, "match.any")) for item in self.any]
        self.all = [_normalise_condition(_ensure_dict(item, "match.all")) for item in self.all]
        self.none = [_normalise_condition(_ensure_dict(item, "match.none")) for item in self.none]
        return self


class ContextConfig(BaseModel):
    """One identity/account context."""

    model_config = ConfigDict(extra="forbid")

    name: str
    identity: str
    folders: FolderConfig = Field(default_factory=FolderConfig)
    match: Optional[ContextMatch] = None


class LegacyReplyPolicy(BaseModel):
    """Deprecated per-reply crypto override, expanded into policy tokens."""

    model_config = ConfigDict(extra="forbid")

    encrypted: Literal["none", "sign", "encrypt", "sign-and-encrypt"] = "none"
    plain: Literal["none", "sign", "encrypt", "sign-and-encrypt"] = "none"


class CryptoConfig(BaseModel):
    """Crypto policy configuration."""

    model_config = ConfigDict(extra="forbid")

    method: Literal["pgpmime", "smime", "pgp"] = "pgpmime"
    policy: List[CryptoPolicy] = Field(default_factory=lambda: sorted(DEFAULT_POLICY))
    legacy_reply_policy: Optional[LegacyReplyPolicy] = None


class ComposeConfig(BaseModel):
    """Compose engine behaviour."""

    model_config = ConfigDict(extra="forbid")

    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    sent_behavior: SentBehavior = SentBehavior.SENT
    context_policy: ContextPolicy = ContextPolicy.ASK_IF_NONE
    default_folders: FolderConfig = Field(default_factory=FolderConfig)
    contexts: List[ContextConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_contexts(self) -> "ComposeConfig":
        names = [context.name for context in self.contexts]
        if len(names) != len(set(names)):
            raise ValidationError("context names must be unique")
        return self


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    paths: PathsConfig
    imap: Optional[ImapSettings] = None
    compose: ComposeConfig = Field(default_factory=ComposeConfig)

    @classmethod
    def model_validate(cls, data: Dict[str, Any]) -> "RuntimeConfig":  # type: ignore[override]
        try:
            return super().model_validate(data)
        except _PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc

    @classmethod
    def minimal(cls, spool_dir: str = "/var/lib/mailcompose/spool") -> "RuntimeConfig":
        return cls(paths=PathsConfig(spool_dir=spool_dir))
