# comparison.py
"""
Before/after comparison slider.

The slider holds a single `position` in [0, 100]: the *before* image is
clipped to `[0%, position%]` of its width and drawn over the full-width
*after* image, with the draggable divider at `position%`. The state is
ephemeral; the share view only hands the client its starting values.
"""

from typing import Any, Dict, Optional

from lineage import Lineage

POSITION_MIN = 0.0
POSITION_MAX = 100.0
POSITION_START = 50.0
KEY_STEP = 5.0

KEY_DIRECTIONS = {"ArrowLeft": -1, "ArrowRight": 1}


def clamp(value: float, low: float = POSITION_MIN, high: float = POSITION_MAX) -> float:
    return max(low, min(high, value))


class ComparisonSlider:

    def __init__(self, before_ref: str, after_ref: str, position: float = POSITION_START):
        self.before_ref = before_ref
        self.after_ref = after_ref
        self.position = clamp(position)

    def drag_to(self, pointer_x: float, container_left: float, container_width: float) -> float:
        """Moves the divider under the pointer, clamped to the container."""
        if container_width <= 0:
            return self.position
        self.position = clamp((pointer_x - container_left) / container_width * 100)
        return self.position

    def press(self, key: str) -> float:
        """Arrow keys nudge the divider by `KEY_STEP`; other keys do nothing."""
        direction = KEY_DIRECTIONS.get(key)
        if direction:
            self.position = clamp(self.position + direction * KEY_STEP)
        return self.position

    @property
    def clip_path(self) -> str:
        """CSS clip for the before image: hide everything right of the divider."""
        return f"inset(0 {POSITION_MAX - self.position:g}% 0 0)"

    @property
    def divider_left(self) -> str:
        return f"{self.position:g}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "before_image_ref": self.before_ref,
            "after_image_ref": self.after_ref,
            "position": self.position,
            "min": POSITION_MIN,
            "max": POSITION_MAX,
            "step": KEY_STEP,
            "clip_path": self.clip_path,
            "divider_left": self.divider_left,
        }


def comparison_for(lineage: Lineage) -> Optional[ComparisonSlider]:
    """Parent render (before) against the current render (after), when both exist."""
    parent = lineage.parent
    if parent is None or not parent.image_ref or not lineage.current.image_ref:
        return None
    return ComparisonSlider(parent.image_ref, lineage.current.image_ref)
