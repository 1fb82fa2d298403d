from typing import List, Optional, Sequence

from runner.actions import ClickAction
from runner.logger import log
from runner.perception.ui_element import UIElement

# Order matters only for readability; the first matching element wins.
DEFAULT_KEYWORDS = (
    "Play", "Level", "Claim", "Collect", "No Thanks", "Tap to Start", "Retry", "Free",
    "Install", "Update", "Confirm", "Allow", "Continue", "Next", "Skip", "Close", "X",
)

SHORT_TEXT_LIMIT = 20

class MenuHeuristic:
    """Taps the first menu or dialog button whose label contains a known keyword."""

    def __init__(self, keywords: Optional[Sequence[str]] = None):
        self.keywords = tuple(keywords) if keywords is not None else DEFAULT_KEYWORDS
        self._lowered = [k.lower() for k in self.keywords]

    def _matches(self, element: UIElement) -> bool:
        if not (element.is_clickable or len(element.text) < SHORT_TEXT_LIMIT):
            return False
        text = element.text.lower()
        return any(k in text for k in self._lowered)

    def find_menu_action(self, elements: List[UIElement]) -> Optional[ClickAction]:
        target = next((el for el in elements if self._matches(el)), None)
        if target is None:
            return None

        log("DEBUG", "menu_action_found", "Menu action found", text=target.text)
        return ClickAction(
            x=float(target.bounds.center_x),
            y=float(target.bounds.center_y),
            label=f"Menu: {target.text}",
            confidence=1.0,
            origin_sequence_id="menu_auto",
        )
