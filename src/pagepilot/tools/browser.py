"""
PagePilot - Browser Capabilities (Playwright)

One routine per capability, all addressing the session's active page:
- take_screenshot / open_browser / open_url
- click_screen / send_keys / double_click
- scroll / find_element

Routines raise ElementNotFound / NavigationTimeout / DriverFailure for
driver-level problems; execute() turns every PagePilotError into a failure
Outcome so one bad step never ends the control loop.
"""

from __future__ import annotations

import base64
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from pagepilot.errors import (
    DriverFailure,
    ElementNotFound,
    ErrorKind,
    NavigationTimeout,
    PagePilotError,
    UnknownCapability,
)
from pagepilot.outcome import Outcome
from pagepilot.session import BrowserSession
from pagepilot.tools.arguments import (
    CapabilityName,
    ClickScreenArgs,
    DoubleClickArgs,
    FindElementArgs,
    OpenBrowserArgs,
    OpenUrlArgs,
    ScrollArgs,
    SendKeysArgs,
    TakeScreenshotArgs,
)

logger = logging.getLogger("pagepilot.tools.browser")


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════


def _first_line(err: Exception) -> str:
    """Playwright messages carry a multi-line call log; keep the headline."""
    text = str(err).strip()
    return text.splitlines()[0] if text else err.__class__.__name__


async def _wait_for(page: Page, selector: str, timeout: int):
    await page.wait_for_selector(selector, timeout=timeout)


def _selector_error(action: str, selector: str, err: Exception, timeout: int) -> PagePilotError:
    """Classify a failed selector wait or action."""
    if isinstance(err, PlaywrightTimeout):
        return ElementNotFound(f"{action} failed: selector '{selector}' did not appear within {timeout}ms")
    return DriverFailure(f"{action} failed on '{selector}': {_first_line(err)}")


# ═══════════════════════════════════════════════════════════════════════════
# Capabilities
# ═══════════════════════════════════════════════════════════════════════════


async def take_screenshot(session: BrowserSession, args: TakeScreenshotArgs) -> Outcome:
    """Capture the active page as a base64 PNG."""
    page = session.active_page()
    try:
        raw = await page.screenshot(type="png")
    except PlaywrightError as e:
        raise DriverFailure(f"Screenshot failed: {_first_line(e)}") from e

    image = base64.b64encode(raw).decode("ascii")
    return Outcome.success(CapabilityName.TAKE_SCREENSHOT, image=image, mime_type="image/png", url=page.url)


async def open_browser(session: BrowserSession, args: OpenBrowserArgs) -> Outcome:
    """Open another page in the same browser. The active page is unchanged."""
    try:
        await session.open_page()
    except PlaywrightError as e:
        raise DriverFailure(f"Browser instance unavailable: {_first_line(e)}") from e
    return Outcome.success(
        CapabilityName.OPEN_BROWSER,
        message="Opened a new page; the active page is unchanged",
        page_count=session.page_count,
    )


async def open_url(session: BrowserSession, args: OpenUrlArgs) -> Outcome:
    """
    Navigate the active page.

    Waits for network idle, then DOMContentLoaded, then a fixed settle
    delay so the next screenshot sees a stable page.
    """
    settings = session.settings
    page = session.active_page()
    try:
        await page.goto(args.url, wait_until="networkidle", timeout=settings.navigation_timeout_ms)
        await page.wait_for_load_state("domcontentloaded")
        await page.wait_for_timeout(settings.settle_delay_ms)
    except PlaywrightTimeout as e:
        raise NavigationTimeout(f"Failed to open URL {args.url}: {_first_line(e)}") from e
    except PlaywrightError as e:
        raise DriverFailure(f"Failed to open URL {args.url}: {_first_line(e)}") from e

    try:
        title = await page.title()
    except PlaywrightError:
        title = ""

    return Outcome.success(
        CapabilityName.OPEN_URL,
        message=f"Opened {args.url} in the current browser window",
        url=page.url,
        title=title,
    )


async def click_screen(session: BrowserSession, args: ClickScreenArgs) -> Outcome:
    """Click by selector (preferred) or by viewport coordinates."""
    name = CapabilityName.CLICK_SCREEN
    mode = args.addressing_mode
    if mode is None:
        return Outcome.failure(
            name,
            ErrorKind.INVALID_ARGUMENTS,
            "Either selector or both x and y coordinates must be provided",
        )

    page = session.active_page()
    timeout = session.settings.selector_timeout_ms

    if mode == "selector":
        try:
            await _wait_for(page, args.selector, timeout)
            await page.click(args.selector)
        except PlaywrightError as e:
            raise _selector_error("Click", args.selector, e, timeout) from e
        return Outcome.success(name, message=f"Clicked element {args.selector}")

    try:
        await page.mouse.click(args.x, args.y)
    except PlaywrightError as e:
        raise DriverFailure(f"Click at ({args.x}, {args.y}) failed: {_first_line(e)}") from e
    return Outcome.success(name, message=f"Clicked at ({args.x}, {args.y})")


async def send_keys(session: BrowserSession, args: SendKeysArgs) -> Outcome:
    """Replace the element's value with `text` (fill, not append)."""
    page = session.active_page()
    timeout = session.settings.selector_timeout_ms
    try:
        await _wait_for(page, args.selector, timeout)
        await page.fill(args.selector, args.text)
    except PlaywrightError as e:
        raise _selector_error("Typing", args.selector, e, timeout) from e
    return Outcome.success(CapabilityName.SEND_KEYS, message=f'Typed "{args.text}" into {args.selector}')


async def scroll(session: BrowserSession, args: ScrollArgs) -> Outcome:
    """Scroll vertically: down adds to the offset, up subtracts."""
    page = session.active_page()
    try:
        await page.evaluate("(y) => window.scrollBy(0, y)", args.offset)
        scroll_y = await page.evaluate("() => window.scrollY")
    except PlaywrightError as e:
        raise DriverFailure(f"Scroll failed: {_first_line(e)}") from e
    return Outcome.success(
        CapabilityName.SCROLL,
        message=f"Scrolled {args.direction.value} by {args.amount:g}px",
        scroll_y=scroll_y,
    )


async def double_click(session: BrowserSession, args: DoubleClickArgs) -> Outcome:
    page = session.active_page()
    timeout = session.settings.selector_timeout_ms
    try:
        await _wait_for(page, args.selector, timeout)
        await page.click(args.selector, click_count=2)
    except PlaywrightError as e:
        raise _selector_error("Double click", args.selector, e, timeout) from e
    return Outcome.success(CapabilityName.DOUBLE_CLICK, message=f"Double clicked on {args.selector}")


async def find_element(session: BrowserSession, args: FindElementArgs) -> Outcome:
    """
    Bounding box of the first match.

    No match is a valid observation: success with found=False.
    """
    name = CapabilityName.FIND_ELEMENT
    page = session.active_page()
    try:
        element = await page.query_selector(args.selector)
        box = await element.bounding_box() if element is not None else None
    except PlaywrightError as e:
        raise DriverFailure(f"Element lookup failed for '{args.selector}': {_first_line(e)}") from e

    if element is None:
        return Outcome.success(name, found=False, selector=args.selector, box=None, message="Element not found")
    return Outcome.success(name, found=True, selector=args.selector, box=box)


# ═══════════════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════════════


async def execute(session: BrowserSession, name: CapabilityName, args) -> Outcome:
    """Run one validated invocation. Session and driver errors come back as Outcomes."""
    logger.debug(f"Executing {name.value}: {args}", extra={"capability": name.value})
    try:
        if name is CapabilityName.TAKE_SCREENSHOT:
            return await take_screenshot(session, args)
        elif name is CapabilityName.OPEN_BROWSER:
            return await open_browser(session, args)
        elif name is CapabilityName.OPEN_URL:
            return await open_url(session, args)
        elif name is CapabilityName.CLICK_SCREEN:
            return await click_screen(session, args)
        elif name is CapabilityName.SEND_KEYS:
            return await send_keys(session, args)
        elif name is CapabilityName.SCROLL:
            return await scroll(session, args)
        elif name is CapabilityName.DOUBLE_CLICK:
            return await double_click(session, args)
        elif name is CapabilityName.FIND_ELEMENT:
            return await find_element(session, args)
    except PagePilotError as e:
        return Outcome.from_error(name.value, e)

    raise UnknownCapability(name.value)


# ═══════════════════════════════════════════════════════════════════════════
# Tool Schemas (OpenAI function-calling format)
# ═══════════════════════════════════════════════════════════════════════════

_SELECTOR_PROPERTY = {
    "type": "string",
    "description": "CSS selector of the target element (e.g. '#email', 'button[type=submit]', 'text=Sign up')",
}

TOOL_SCHEMAS = {
    CapabilityName.TAKE_SCREENSHOT: {
        "description": (
            "Take a screenshot of the current page. The image is attached to the tool result so you "
            "can see the browser. Take one before acting and again after every action to verify it."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    CapabilityName.OPEN_BROWSER: {
        "description": (
            "Open an additional browser page (tab) in the same browser. All other tools keep "
            "acting on the current page."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    CapabilityName.OPEN_URL: {
        "description": (
            "Open a URL in the current browser window. Waits for the network to go idle and the "
            "DOM to load, plus a short settle delay. Returns the final URL and page title."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "Absolute URL, e.g. 'https://example.com/signup'"},
            },
            "required": ["url"],
        },
    },
    CapabilityName.CLICK_SCREEN: {
        "description": (
            "Click an element by CSS selector, or click at viewport pixel coordinates (x, y). "
            "Provide either a selector or both x and y. If both are given the selector is used."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "selector": {**_SELECTOR_PROPERTY, "type": ["string", "null"]},
                "x": {"type": ["number", "null"], "description": "Viewport x coordinate in pixels"},
                "y": {"type": ["number", "null"], "description": "Viewport y coordinate in pixels"},
            },
            "required": [],
        },
    },
    CapabilityName.SEND_KEYS: {
        "description": (
            "Type text into an input element. Replaces the current value of the field. "
            "Use for filling out forms or search boxes."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "selector": _SELECTOR_PROPERTY,
                "text": {"type": "string", "description": "The text to type"},
            },
            "required": ["selector", "text"],
        },
    },
    CapabilityName.SCROLL: {
        "description": "Scroll the page up or down by a number of pixels. Use on long pages to reveal content.",
        "parameters": {
            "type": "object",
            "properties": {
                "direction": {"type": "string", "enum": ["up", "down"]},
                "amount": {"type": "number", "description": "Pixels to scroll (positive)"},
            },
            "required": ["direction", "amount"],
        },
    },
    CapabilityName.DOUBLE_CLICK: {
        "description": "Double click an element. Useful for text selection or controls that need a double click.",
        "parameters": {
            "type": "object",
            "properties": {"selector": _SELECTOR_PROPERTY},
            "required": ["selector"],
        },
    },
    CapabilityName.FIND_ELEMENT: {
        "description": (
            "Find the first element matching a CSS selector and return its bounding box "
            "(x, y, width, height). Returns found=false when nothing matches. Useful when you want "
            "to click something but don't know its coordinates."
        ),
        "parameters": {
            "type": "object",
            "properties": {"selector": _SELECTOR_PROPERTY},
            "required": ["selector"],
        },
    },
}
