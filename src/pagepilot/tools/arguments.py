"""
PagePilot - Capability Arguments

One frozen dataclass per capability. Each `from_raw()` checks the raw
argument bag the decision-maker sent (presence, type, enum membership)
and raises InvalidArguments naming the offending field.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from pagepilot.errors import InvalidArguments


class CapabilityName(str, enum.Enum):
    """The closed set of browser capabilities."""
    TAKE_SCREENSHOT = "take_screenshot"
    OPEN_BROWSER = "open_browser"
    OPEN_URL = "open_url"
    CLICK_SCREEN = "click_screen"
    SEND_KEYS = "send_keys"
    SCROLL = "scroll"
    DOUBLE_CLICK = "double_click"
    FIND_ELEMENT = "find_element"


class ScrollDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"


# ═══════════════════════════════════════════════════════════════════════════
# Field checks
# ═══════════════════════════════════════════════════════════════════════════


def _as_mapping(raw: Any, allowed: tuple[str, ...]) -> dict[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidArguments(None, f"expected an object, got {type(raw).__name__}")
    unknown = sorted(set(raw) - set(allowed))
    if unknown:
        raise InvalidArguments(unknown[0], "unexpected field")
    return raw


def _is_number(value: Any) -> bool:
    # bool is an int subclass; true/false is never a coordinate
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _required_str(raw: dict, field: str, allow_empty: bool = False) -> str:
    if field not in raw or raw[field] is None:
        raise InvalidArguments(field, "required field is missing")
    value = raw[field]
    if not isinstance(value, str):
        raise InvalidArguments(field, f"expected string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        raise InvalidArguments(field, "must not be empty")
    return value


def _optional_str(raw: dict, field: str) -> str | None:
    value = raw.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArguments(field, f"expected string or null, got {type(value).__name__}")
    return value or None


def _optional_number(raw: dict, field: str) -> float | None:
    value = raw.get(field)
    if value is None:
        return None
    if not _is_number(value):
        raise InvalidArguments(field, f"expected number or null, got {value!r}")
    return value


def _required_number(raw: dict, field: str) -> float:
    if field not in raw or raw[field] is None:
        raise InvalidArguments(field, "required field is missing")
    value = raw[field]
    if not _is_number(value):
        raise InvalidArguments(field, f"expected number, got {value!r}")
    return value


def _well_formed_url(field: str, value: str) -> str:
    value = value.strip()
    if any(ch.isspace() for ch in value):
        raise InvalidArguments(field, f"not a well-formed URL: {value!r}")
    parsed = urlparse(value)
    if not parsed.scheme:
        raise InvalidArguments(field, f"URL needs a scheme (e.g. https://): {value!r}")
    if parsed.scheme in ("http", "https") and not parsed.netloc:
        raise InvalidArguments(field, f"URL has no host: {value!r}")
    if not (parsed.netloc or parsed.path):
        raise InvalidArguments(field, f"not a well-formed URL: {value!r}")
    return value


# ═══════════════════════════════════════════════════════════════════════════
# Argument structs
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TakeScreenshotArgs:
    @classmethod
    def from_raw(cls, raw: Any) -> "TakeScreenshotArgs":
        _as_mapping(raw, ())
        return cls()


@dataclass(frozen=True)
class OpenBrowserArgs:
    @classmethod
    def from_raw(cls, raw: Any) -> "OpenBrowserArgs":
        _as_mapping(raw, ())
        return cls()


@dataclass(frozen=True)
class OpenUrlArgs:
    url: str

    @classmethod
    def from_raw(cls, raw: Any) -> "OpenUrlArgs":
        raw = _as_mapping(raw, ("url",))
        return cls(url=_well_formed_url("url", _required_str(raw, "url")))


@dataclass(frozen=True)
class ClickScreenArgs:
    """Selector or (x, y). Selector wins when both are given."""
    selector: str | None = None
    x: float | None = None
    y: float | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ClickScreenArgs":
        raw = _as_mapping(raw, ("selector", "x", "y"))
        return cls(
            selector=_optional_str(raw, "selector"),
            x=_optional_number(raw, "x"),
            y=_optional_number(raw, "y"),
        )

    @property
    def addressing_mode(self) -> str | None:
        if self.selector:
            return "selector"
        if self.x is not None and self.y is not None:
            return "coordinates"
        return None


@dataclass(frozen=True)
class SendKeysArgs:
    selector: str
    text: str

    @classmethod
    def from_raw(cls, raw: Any) -> "SendKeysArgs":
        raw = _as_mapping(raw, ("selector", "text"))
        return cls(
            selector=_required_str(raw, "selector"),
            text=_required_str(raw, "text", allow_empty=True),
        )


@dataclass(frozen=True)
class ScrollArgs:
    direction: ScrollDirection
    amount: float

    @classmethod
    def from_raw(cls, raw: Any) -> "ScrollArgs":
        raw = _as_mapping(raw, ("direction", "amount"))
        direction = _required_str(raw, "direction")
        try:
            parsed = ScrollDirection(direction)
        except ValueError:
            allowed = ", ".join(d.value for d in ScrollDirection)
            raise InvalidArguments("direction", f"must be one of: {allowed} (got {direction!r})") from None
        amount = _required_number(raw, "amount")
        if amount <= 0:
            raise InvalidArguments("amount", f"must be positive, got {amount}")
        return cls(direction=parsed, amount=amount)

    @property
    def offset(self) -> float:
        """Signed vertical offset for window.scrollBy."""
        return self.amount if self.direction is ScrollDirection.DOWN else -self.amount


@dataclass(frozen=True)
class DoubleClickArgs:
    selector: str

    @classmethod
    def from_raw(cls, raw: Any) -> "DoubleClickArgs":
        raw = _as_mapping(raw, ("selector",))
        return cls(selector=_required_str(raw, "selector"))


@dataclass(frozen=True)
class FindElementArgs:
    selector: str

    @classmethod
    def from_raw(cls, raw: Any) -> "FindElementArgs":
        raw = _as_mapping(raw, ("selector",))
        return cls(selector=_required_str(raw, "selector"))


ARGUMENT_TYPES: dict[CapabilityName, type] = {
    CapabilityName.TAKE_SCREENSHOT: TakeScreenshotArgs,
    CapabilityName.OPEN_BROWSER: OpenBrowserArgs,
    CapabilityName.OPEN_URL: OpenUrlArgs,
    CapabilityName.CLICK_SCREEN: ClickScreenArgs,
    CapabilityName.SEND_KEYS: SendKeysArgs,
    CapabilityName.SCROLL: ScrollArgs,
    CapabilityName.DOUBLE_CLICK: DoubleClickArgs,
    CapabilityName.FIND_ELEMENT: FindElementArgs,
}
