"""
PagePilot - Tools

Capability registry for the browser tools.
Validates the decision-maker's arguments, dispatches to the routine,
hands back the Outcome unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pagepilot.errors import (
    DuplicateCapability,
    ErrorKind,
    InvalidArguments,
    RegistryFrozen,
)
from pagepilot.outcome import Outcome
from pagepilot.session import BrowserSession
from pagepilot.tools.arguments import ARGUMENT_TYPES, CapabilityName
from pagepilot.tools.browser import TOOL_SCHEMAS, execute

logger = logging.getLogger("pagepilot.tools")


@dataclass(frozen=True)
class CapabilitySpec:
    """Immutable descriptor: name, description, JSON schema, argument struct."""
    name: CapabilityName
    description: str
    argument_type: type
    parameters: dict = field(default_factory=lambda: {"type": "object", "properties": {}, "required": []})

    def to_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# ═══════════════════════════════════════════════════════════════════════════
# Capability Registry
# ═══════════════════════════════════════════════════════════════════════════


class CapabilityRegistry:
    """Fixed name -> capability mapping bound to one browser session."""

    def __init__(self, session: BrowserSession):
        self.session = session
        self._specs: dict[CapabilityName, CapabilitySpec] = {}
        self._frozen = False

    def register(self, spec: CapabilitySpec):
        """Register a capability. Configuration time only."""
        if self._frozen:
            raise RegistryFrozen(spec.name.value)
        if spec.name in self._specs:
            raise DuplicateCapability(spec.name.value)
        self._specs[spec.name] = spec

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return [name.value for name in self._specs]

    def _lookup(self, name: str) -> CapabilitySpec | None:
        try:
            return self._specs.get(CapabilityName(name))
        except ValueError:
            return None

    def __contains__(self, name: str) -> bool:
        return self._lookup(name) is not None

    def __len__(self) -> int:
        return len(self._specs)

    async def invoke(self, name: str, raw_arguments: dict[str, Any] | None = None) -> Outcome:
        """Validate and run one invocation. Always returns an Outcome."""
        spec = self._lookup(name)
        if spec is None:
            logger.warning(f"Unknown capability requested: {name}")
            return Outcome.failure(name, ErrorKind.UNKNOWN_CAPABILITY, f"Unknown capability: {name}")

        try:
            args = spec.argument_type.from_raw(raw_arguments)
        except InvalidArguments as e:
            logger.info(f"Rejected {name} arguments: {e}", extra={"capability": name})
            return Outcome.from_error(spec.name, e)

        outcome = await execute(self.session, spec.name, args)
        if outcome.ok:
            logger.debug(f"{name} succeeded", extra={"capability": name})
        else:
            logger.info(
                f"{name} failed: {outcome.message}",
                extra={"capability": name, "outcome_kind": outcome.kind.value},
            )
        return outcome

    def get_schemas(self) -> list[dict]:
        """Tool schemas for the LLM (OpenAI function-calling format)."""
        return [spec.to_schema() for spec in self._specs.values()]


def create_capability_registry(session: BrowserSession) -> CapabilityRegistry:
    """Registry with every browser capability, frozen for the run."""
    registry = CapabilityRegistry(session)
    for name in CapabilityName:
        schema = TOOL_SCHEMAS[name]
        registry.register(CapabilitySpec(
            name=name,
            description=schema["description"],
            argument_type=ARGUMENT_TYPES[name],
            parameters=schema["parameters"],
        ))
    registry.freeze()
    return registry


__all__ = [
    "CapabilityName",
    "CapabilityRegistry",
    "CapabilitySpec",
    "create_capability_registry",
]
