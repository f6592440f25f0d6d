"""Display-mode heuristic: pick the TV layout on large displays."""

import logging
from enum import Enum
from typing import Callable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

TV_MIN_WIDTH = 1920
TV_ASPECT_RATIO = 16 / 9
# Tight enough that 1366x768 laptops (1.7786) stay on the desktop layout
ASPECT_TOLERANCE = 0.0005
TV_USER_AGENT_MARKERS = ("tv", "android tv")


class DisplayMode(str, Enum):
    TV = "tv"
    DESKTOP = "desktop"


UserAgentHints = Union[str, Mapping[str, str], None]


def _user_agent(hints: UserAgentHints) -> str:
    if not hints:
        return ""
    if isinstance(hints, str):
        return hints.lower()
    return " ".join(str(value) for value in hints.values()).lower()


def classify(width: float, height: float, user_agent_hints: UserAgentHints = None) -> DisplayMode:
    """
    Decide whether to use the TV layout.

    Any one of these is enough: width of 1920px or more, a user agent that
    mentions a TV, or an aspect ratio within ASPECT_TOLERANCE of 16:9.

    Args:
        width: Viewport width in pixels
        height: Viewport height in pixels
        user_agent_hints: User-agent string, or a mapping of client hints

    Returns:
        DisplayMode.TV or DisplayMode.DESKTOP
    """
    if width >= TV_MIN_WIDTH:
        return DisplayMode.TV

    user_agent = _user_agent(user_agent_hints)
    if any(marker in user_agent for marker in TV_USER_AGENT_MARKERS):
        return DisplayMode.TV

    if height > 0 and abs(width / height - TV_ASPECT_RATIO) < ASPECT_TOLERANCE:
        return DisplayMode.TV

    return DisplayMode.DESKTOP


class DisplayModeClassifier:
    """Holds the current mode and recomputes it on every resize report.

    There is no hysteresis: a borderline viewport may flip between modes.
    """

    def __init__(self, mode: DisplayMode = DisplayMode.DESKTOP):
        self.mode = mode
        self.width: Optional[float] = None
        self.height: Optional[float] = None
        self._listeners: list[Callable[[DisplayMode], None]] = []

    def add_listener(self, listener: Callable[[DisplayMode], None]):
        self._listeners.append(listener)

    def update(self, width: float, height: float, user_agent_hints: UserAgentHints = None) -> DisplayMode:
        """Recompute the mode for a new viewport size."""
        self.width, self.height = width, height
        mode = classify(width, height, user_agent_hints)
        if mode != self.mode:
            logger.info(f"Display mode: {self.mode.value} -> {mode.value} ({width}x{height})")
            self.mode = mode
            for listener in self._listeners:
                try:
                    listener(mode)
                except Exception:
                    logger.exception("Display mode listener failed")
        return mode
