# perception/color.py
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114

class ColorSignature(BaseModel):
    model_config = ConfigDict(frozen=True)

    r: int = Field(..., ge=0, le=255)
    g: int = Field(..., ge=0, le=255)
    b: int = Field(..., ge=0, le=255)
    brightness: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_rgb(cls, r: int, g: int, b: int) -> "ColorSignature":
        return cls(r=r, g=g, b=b, brightness=min(1.0, luminance(r, g, b) / 255.0))

class GridCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    col: int
    center_x: float
    center_y: float
    signature: ColorSignature

def luminance(r: int, g: int, b: int) -> float:
    return LUMA_R * r + LUMA_G * g + LUMA_B * b

def color_distance(a: ColorSignature, b: ColorSignature) -> int:
    return abs(a.r - b.r) + abs(a.g - b.g) + abs(a.b - b.b)

def are_similar(a: ColorSignature, b: ColorSignature, threshold: float) -> bool:
    return color_distance(a, b) < threshold

def sample_window(width: int, height: int, cx: int, cy: int, size: int) -> Optional[Tuple[int, int, int, int]]:
    """
    Square window of roughly `size` pixels centred on (cx, cy), clamped to the
    frame. Returned as half-open bounds (x0, y0, x1, y1); None when the clamped
    window holds no pixels.
    """
    if width <= 0 or height <= 0 or size < 0:
        return None
    half = size // 2
    x0 = max(0, cx - half)
    y0 = max(0, cy - half)
    x1 = min(width, cx + half + 1)
    y1 = min(height, cy + half + 1)
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1

def average_color(frame, cx: int, cy: int, size: int) -> Optional[ColorSignature]:
    window = sample_window(frame.width, frame.height, int(cx), int(cy), size)
    if window is None:
        return None
    x0, y0, x1, y1 = window
    region = frame.pixels[y0:y1, x0:x1, :3]
    count = region.shape[0] * region.shape[1]
    sums = region.reshape(-1, 3).sum(axis=0, dtype="int64")
    # integer averages, truncated
    r, g, b = (int(s) // count for s in sums)
    return ColorSignature.from_rgb(r, g, b)
