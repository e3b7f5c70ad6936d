"""Normalized (0-1) image regions for placing and moving elements."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Box:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @classmethod
    def from_list(cls, values) -> Box:
        x1, y1, x2, y2 = (float(v) for v in list(values)[:4])
        return cls(x1, y1, x2, y2)

    def to_list(self) -> list[float]:
        return [self.x1, self.y1, self.x2, self.y2]

    def as_prompt(self) -> str:
        return f"{self.x1},{self.y1},{self.x2},{self.y2}"


ADD_REGIONS: dict[str, Box] = {
    "center": Box(0.3, 0.3, 0.7, 0.7),
    "left": Box(0.05, 0.3, 0.35, 0.7),
    "right": Box(0.65, 0.3, 0.95, 0.7),
    "top": Box(0.3, 0.05, 0.7, 0.35),
    "bottom": Box(0.3, 0.65, 0.7, 0.95),
    "top-left": Box(0.05, 0.05, 0.35, 0.35),
    "top-right": Box(0.65, 0.05, 0.95, 0.35),
    "bottom-left": Box(0.05, 0.65, 0.35, 0.95),
    "bottom-right": Box(0.65, 0.65, 0.95, 0.95),
}


def region_for_position(position: str) -> Box:
    """Insertion region for a named position; unknown names get the center."""
    return ADD_REGIONS.get(position, ADD_REGIONS["center"])


def scaled_box(box: Box, scale: float) -> Box:
    """Same center, width and height multiplied by ``scale``."""
    cx, cy = box.center
    w, h = box.width * scale, box.height * scale
    return Box(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)


def moved_box(box: Box, position: str) -> Box:
    """Same size, re-centered on the anchor for ``position``.

    Horizontal moves keep the vertical center and vice versa; corners set
    both axes.
    """
    cx, cy = box.center
    if "left" in position:
        cx = 0.15
    elif "right" in position:
        cx = 0.85
    if position.startswith("top"):
        cy = 0.15
    elif position.startswith("bottom"):
        cy = 0.85
    if position == "center":
        cx, cy = 0.5, 0.5
    w, h = box.width, box.height
    return Box(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)
