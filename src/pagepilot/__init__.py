"""PagePilot — an LLM-driven browser control loop on Playwright."""

__version__ = "0.1.0"
__description__ = "Expose browser primitives as LLM tools and drive one page until the task is done."

from pagepilot.outcome import Outcome
from pagepilot.session import BrowserSession
from pagepilot.tools import CapabilityName, CapabilityRegistry, create_capability_registry

__all__ = [
    "BrowserSession",
    "CapabilityName",
    "CapabilityRegistry",
    "Outcome",
    "create_capability_registry",
]
