# runner/decision_engine.py
from typing import List, Optional

from runner import metrics
from runner.actions import BaseAction
from runner.logger import log
from runner.perception.grid_matcher import GridMatcher
from runner.perception.menu_heuristic import MenuHeuristic
from runner.perception.ui_element import UIElement

class DecisionEngine:
    """
    Picks at most one action per cycle, in strict priority order:

    1. the reasoner when its backend is ready, otherwise the menu heuristic;
    2. the grid matcher, when step 1 found nothing and a frame is available;
    3. nothing.

    Menus and dialogs are always handled before gameplay, and a slow or
    missing reasoning backend never blocks the grid matcher.
    """

    def __init__(self, menu_heuristic: MenuHeuristic, grid_matcher: GridMatcher, reasoner=None):
        self.menu_heuristic = menu_heuristic
        self.grid_matcher = grid_matcher
        self.reasoner = reasoner

    @property
    def is_reasoning_ready(self) -> bool:
        return self.reasoner is not None and self.reasoner.is_ready

    async def decide(self, frame, elements: List[UIElement]) -> Optional[BaseAction]:
        if self.is_reasoning_ready:
            source = "reasoner"
            action = await self.reasoner.suggest_action(elements)
        else:
            source = "menu"
            action = self.menu_heuristic.find_menu_action(elements)

        if action is None and frame is not None:
            source = "grid"
            action = self.grid_matcher.find_visual_match(frame)

        if action is None:
            source = "none"

        metrics.DECISIONS.labels(source=source).inc()
        log("DEBUG", "decision", "Decision made", source=source,
            label=action.label if action else None, elements=len(elements),
            frame=frame.sequence if frame is not None else None)
        return action
