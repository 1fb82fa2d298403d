from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from runner.errors import ActionExecutionError
from runner.perception.ui_element import UIElement

class GlobalAction(str, Enum):
    BACK = "BACK"
    HOME = "HOME"
    RECENTS = "RECENTS"
    NOTIFICATIONS = "NOTIFICATIONS"

class GesturePath(BaseModel):
    """Ordered touch points of one stroke, in screen pixels."""
    model_config = ConfigDict(frozen=True)

    points: List[Tuple[float, float]] = Field(..., min_length=1)

    @classmethod
    def tap(cls, x: float, y: float) -> "GesturePath":
        return cls(points=[(x, y)])

    @classmethod
    def line(cls, x1: float, y1: float, x2: float, y2: float) -> "GesturePath":
        return cls(points=[(x1, y1), (x2, y2)])

    @property
    def start(self) -> Tuple[float, float]:
        return self.points[0]

    @property
    def end(self) -> Tuple[float, float]:
        return self.points[-1]

class AutomationBackend(ABC):
    """
    The platform automation capability: reads the UI tree and the screen,
    and performs synthetic input. Implementations raise on transport failures;
    callers decide how to degrade.
    """

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def screen_size(self) -> Tuple[int, int]:
        ...

    @abstractmethod
    async def capture_ui_snapshot(self) -> List[UIElement]:
        ...

    @abstractmethod
    async def capture_frame(self):
        """Latest screen sample as a runner.frame_buffer.Frame, or None."""
        ...

    @abstractmethod
    async def dispatch_gesture(self, path: GesturePath, duration_ms: int) -> bool:
        """Performs the stroke and returns once it completed (True) or was rejected/cancelled (False)."""
        ...

    @abstractmethod
    async def set_text(self, element: UIElement, text: str) -> bool:
        ...

    @staticmethod
    def _require_editable(element: Optional[UIElement]) -> UIElement:
        if element is None or not element.is_editable:
            raise ActionExecutionError("text input needs an editable target")
        return element

    async def focused_editable(self) -> Optional[UIElement]:
        elements = await self.capture_ui_snapshot()
        return next((el for el in elements if el.is_editable and el.is_focused), None)

    async def global_action(self, kind: GlobalAction) -> bool:
        return False

    async def observed_actions(self) -> AsyncIterator:
        """User actions observed on the device, for learning mode. None by default."""
        return
        yield
