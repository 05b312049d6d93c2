"""
PagePilot - Outcome

The structured result of one capability invocation.

Outcome model uses Pydantic:
  - Frozen, payload included, so an Outcome can't be edited after the routine returns it
  - Either a success payload or an OutcomeError {kind, message}
  - Renders the JSON the decision-maker reads back
"""

from __future__ import annotations

import enum
import json
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator, model_validator

from pagepilot.errors import ErrorKind, PagePilotError

# Payload keys that hold encoded images. Never inlined into tool content.
_IMAGE_KEYS = ("image",)


def _capability_key(capability) -> str:
    return capability.value if isinstance(capability, enum.Enum) else str(capability)


class OutcomeError(BaseModel):
    """Failure detail: kind tag + human-readable message."""
    kind: ErrorKind
    message: str

    model_config = {"frozen": True}


class Outcome(BaseModel):
    """Success payload or structured failure for one invocation."""
    ok: bool
    capability: str
    payload: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    error: OutcomeError | None = None

    model_config = {"frozen": True}

    @field_validator("payload", mode="after")
    @classmethod
    def _read_only_payload(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Copy first so the caller's dict can't change it either
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def _check_shape(self) -> "Outcome":
        if self.ok and self.error is not None:
            raise ValueError("successful outcome cannot carry an error")
        if not self.ok and self.error is None:
            raise ValueError("failed outcome needs an error")
        return self

    # ── Constructors ──

    @classmethod
    def success(cls, capability: str, **payload: Any) -> "Outcome":
        return cls(ok=True, capability=_capability_key(capability), payload=payload)

    @classmethod
    def failure(cls, capability: str, kind: ErrorKind, message: str) -> "Outcome":
        return cls(
            ok=False,
            capability=_capability_key(capability),
            error=OutcomeError(kind=kind, message=message),
        )

    @classmethod
    def from_error(cls, capability: str, err: PagePilotError) -> "Outcome":
        return cls.failure(capability, err.kind, str(err))

    # ── Accessors ──

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return str(self.payload.get("message", ""))

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    @property
    def image(self) -> str | None:
        """Base64 image payload, if this outcome carries one."""
        for key in _IMAGE_KEYS:
            value = self.payload.get(key)
            if value:
                return value
        return None

    def to_tool_content(self) -> str:
        """JSON string handed back to the decision-maker."""
        payload = dict(self.payload)
        for key in _IMAGE_KEYS:
            if payload.get(key):
                payload[key] = f"<{len(payload[key])} base64 chars, attached separately>"

        data: dict[str, Any] = {"ok": self.ok, "capability": self.capability}
        if self.ok:
            data.update(payload)
        else:
            data["error"] = {"kind": self.error.kind.value, "message": self.error.message}
        return json.dumps(data, ensure_ascii=False)


__all__ = ["Outcome", "OutcomeError"]
