"""
Terminal theme for PagePilot
"""

from rich.theme import Theme

# Palette
SIGNAL_GREEN = "#00d26a"
ELECTRIC_CYAN = "#00ffff"
ALERT_RED = "#ff3b5c"
GOLD = "#ffd700"
DIM_GRAY = "#b0b0b0"
GHOST_GRAY = "#888888"

PAGEPILOT_THEME = Theme({
    "info": f"bold {SIGNAL_GREEN}",
    "warning": f"bold {GOLD}",
    "error": f"bold {ALERT_RED}",
    "success": f"bold {SIGNAL_GREEN}",
    "tool": f"bold {ELECTRIC_CYAN}",
    "dim": GHOST_GRAY,
    "muted": DIM_GRAY,
    "agent": "bold white",
})

# Tool name -> short glyph shown before each invocation
TOOL_ICONS = {
    "take_screenshot": "[cam]",
    "open_browser": "[tab]",
    "open_url": "[nav]",
    "click_screen": "[clk]",
    "send_keys": "[key]",
    "scroll": "[scr]",
    "double_click": "[dbl]",
    "find_element": "[fnd]",
}
