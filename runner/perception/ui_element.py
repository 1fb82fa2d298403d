# perception/ui_element.py
from pydantic import BaseModel, ConfigDict

class Rect(BaseModel):
    model_config = ConfigDict(frozen=True)

    left: int
    top: int
    right: int
    bottom: int

    @property
    def center_x(self) -> int:
        return (self.left + self.right) // 2

    @property
    def center_y(self) -> int:
        return (self.top + self.bottom) // 2

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

class UIElement(BaseModel):
    """One node of the automation tree, rebuilt on every snapshot."""
    model_config = ConfigDict(frozen=True)

    text: str = ""
    element_class: str = ""
    is_clickable: bool = False
    is_editable: bool = False
    is_focused: bool = False
    bounds: Rect
