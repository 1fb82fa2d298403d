# runner/actions.py
import time
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

class ActionKind(str, Enum):
    CLICK = "CLICK"
    SWIPE = "SWIPE"
    LONG_PRESS = "LONG_PRESS"
    SCROLL = "SCROLL"
    TYPE_TEXT = "TYPE_TEXT"
    WAIT = "WAIT"

class ScrollDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"

class BaseAction(BaseModel):
    """Fields shared by every action kind. Actions are immutable once built."""
    model_config = ConfigDict(frozen=True)

    label: str = ""
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    origin_sequence_id: str = "manual"
    timestamp: float = Field(default_factory=time.time)

class ClickAction(BaseAction):
    kind: Literal["CLICK"] = "CLICK"
    x: float
    y: float

class LongPressAction(BaseAction):
    kind: Literal["LONG_PRESS"] = "LONG_PRESS"
    x: float
    y: float
    duration_ms: Optional[int] = Field(None, gt=0)

class SwipeAction(BaseAction):
    kind: Literal["SWIPE"] = "SWIPE"
    x: float
    y: float
    end_x: float
    end_y: float
    duration_ms: Optional[int] = Field(None, gt=0)

class ScrollAction(BaseAction):
    kind: Literal["SCROLL"] = "SCROLL"
    direction: ScrollDirection = ScrollDirection.DOWN
    magnitude: Optional[int] = Field(None, gt=0)

class TypeTextAction(BaseAction):
    kind: Literal["TYPE_TEXT"] = "TYPE_TEXT"
    text: str

class WaitAction(BaseAction):
    kind: Literal["WAIT"] = "WAIT"
    duration_ms: int = Field(..., ge=0)

Action = Annotated[
    Union[ClickAction, LongPressAction, SwipeAction, ScrollAction, TypeTextAction, WaitAction],
    Field(discriminator="kind"),
]

action_adapter = TypeAdapter(Action)
action_list_adapter = TypeAdapter(List[Action])

def parse_action(data) -> BaseAction:
    if isinstance(data, (str, bytes)):
        return action_adapter.validate_json(data)
    return action_adapter.validate_python(data)
