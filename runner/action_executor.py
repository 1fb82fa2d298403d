# runner/action_executor.py
import time
import uuid
import random
import asyncio
from typing import Any, Dict, List, Optional

from . import config, metrics
from .actions import ActionKind, ScrollDirection
from .device.base import AutomationBackend, GesturePath
from .logger import log

DEFAULT_SWIPE_DURATION_MS = 300
DEFAULT_SCROLL_MAGNITUDE = 500
DEFAULT_LONG_PRESS_MS = 600
PLAIN_TAP_DURATION_MS = 50
JITTER_PX = 5
TAP_DRIFT_PX = 2
TAP_DURATION_RANGE_MS = (80, 130)

class ActionExecutor:
    """
    Turns Actions into gestures or text input on an AutomationBackend.

    Every primitive awaits the platform until the gesture completed or was
    cancelled and reports the outcome as a bool. Invalid coordinates, rejected
    dispatches, timeouts and backend exceptions all come back as False.
    Taps and long presses are humanized (small positional jitter, randomized
    duration) unless the executor is built with humanize=False.
    """

    def __init__(
        self,
        backend: AutomationBackend,
        humanize: bool = config.HUMANIZE_GESTURES,
        rng: Optional[random.Random] = None,
        gesture_timeout_sec: float = config.GESTURE_TIMEOUT_SEC,
    ):
        self.backend = backend
        self.humanize = humanize
        self.rng = rng or random.Random()
        self.gesture_timeout_sec = gesture_timeout_sec
        self._action_prefix = "action"

    # --------------------------
    # Helpers & logging
    # --------------------------
    def _new_action_id(self) -> str:
        return uuid.uuid4().hex

    def _log_start(self, aid: str, name: str, payload: Dict[str, Any]):
        log("DEBUG", f"{self._action_prefix}_start", f"Action {name} start", action_id=aid, **payload)

    def _log_success(self, aid: str, name: str, payload: Dict[str, Any], duration: float):
        log("INFO", f"{self._action_prefix}_success", f"Action {name} success", action_id=aid, duration_ms=int(duration*1000), **payload)

    def _log_failure(self, aid: str, name: str, payload: Dict[str, Any], error: str):
        log("WARN", f"{self._action_prefix}_failed", f"Action {name} failed", action_id=aid, error=error, **payload)

    async def _dispatch(self, aid: str, name: str, payload: Dict[str, Any], path: GesturePath, duration_ms: int) -> bool:
        self._log_start(aid, name, dict(payload, duration_ms=duration_ms, path=path.points))
        start = time.time()
        timeout = self.gesture_timeout_sec + duration_ms / 1000.0
        try:
            accepted = await asyncio.wait_for(self.backend.dispatch_gesture(path, duration_ms), timeout=timeout)
        except asyncio.TimeoutError:
            self._log_failure(aid, name, payload, f"gesture did not complete within {timeout:.1f}s")
            return False
        except Exception as e:
            self._log_failure(aid, name, payload, str(e))
            return False

        if not accepted:
            self._log_failure(aid, name, payload, "dispatch rejected or cancelled by platform")
            return False
        self._log_success(aid, name, payload, time.time() - start)
        return True

    def _clamp_to_screen(self, x: float, y: float):
        x, y = max(0.0, x), max(0.0, y)
        try:
            width, height = self.backend.screen_size()
        except Exception:
            return x, y
        return min(x, float(width - 1)), min(y, float(height - 1))

    def _humanized_path(self, x: float, y: float) -> GesturePath:
        jx, jy = self._clamp_to_screen(
            x + self.rng.randint(-JITTER_PX, JITTER_PX),
            y + self.rng.randint(-JITTER_PX, JITTER_PX),
        )
        return GesturePath(points=[(jx, jy), self._clamp_to_screen(jx + TAP_DRIFT_PX, jy + TAP_DRIFT_PX)])

    def _humanized_duration(self) -> int:
        return self.rng.randint(*TAP_DURATION_RANGE_MS)

    # --------------------------
    # Action primitives
    # --------------------------
    async def tap(self, x: float, y: float, humanize: Optional[bool] = None) -> bool:
        aid = self._new_action_id()
        payload = {"action": "tap", "x": x, "y": y}
        if x < 0 or y < 0:
            self._log_failure(aid, "tap", payload, "negative coordinates")
            return False

        if self.humanize if humanize is None else humanize:
            path = self._humanized_path(x, y)
            duration_ms = self._humanized_duration()
        else:
            path = GesturePath.tap(x, y)
            duration_ms = PLAIN_TAP_DURATION_MS
        return await self._dispatch(aid, "tap", payload, path, duration_ms)

    async def long_press(self, x: float, y: float, duration_ms: Optional[int] = None, humanize: Optional[bool] = None) -> bool:
        aid = self._new_action_id()
        payload = {"action": "long_press", "x": x, "y": y}
        if x < 0 or y < 0:
            self._log_failure(aid, "long_press", payload, "negative coordinates")
            return False

        hold_ms = duration_ms or DEFAULT_LONG_PRESS_MS
        if self.humanize if humanize is None else humanize:
            path = self._humanized_path(x, y)
            hold_ms += self._humanized_duration()
        else:
            path = GesturePath.tap(x, y)
        return await self._dispatch(aid, "long_press", payload, path, hold_ms)

    async def swipe(self, x: float, y: float, end_x: float, end_y: float, duration_ms: Optional[int] = None) -> bool:
        aid = self._new_action_id()
        payload = {"action": "swipe", "x": x, "y": y, "end_x": end_x, "end_y": end_y}
        if min(x, y, end_x, end_y) < 0:
            self._log_failure(aid, "swipe", payload, "negative coordinates")
            return False
        path = GesturePath.line(x, y, end_x, end_y)
        return await self._dispatch(aid, "swipe", payload, path, duration_ms or DEFAULT_SWIPE_DURATION_MS)

    async def scroll(self, direction: ScrollDirection = ScrollDirection.DOWN, magnitude: Optional[int] = None) -> bool:
        aid = self._new_action_id()
        direction = ScrollDirection(direction)
        payload = {"action": "scroll", "direction": direction.value}
        try:
            width, height = self.backend.screen_size()
        except Exception as e:
            self._log_failure(aid, "scroll", payload, f"screen size unavailable: {e}")
            return False

        m = magnitude or DEFAULT_SCROLL_MAGNITUDE
        cx, cy = width / 2, height / 2
        # finger moves against the scroll direction
        dx, dy = {
            ScrollDirection.DOWN: (0, -m),
            ScrollDirection.UP: (0, m),
            ScrollDirection.LEFT: (m, 0),
            ScrollDirection.RIGHT: (-m, 0),
        }[direction]
        end_x = min(max(cx + dx, 0), max(width - 1, 0))
        end_y = min(max(cy + dy, 0), max(height - 1, 0))
        path = GesturePath.line(cx, cy, end_x, end_y)
        return await self._dispatch(aid, "scroll", payload, path, DEFAULT_SWIPE_DURATION_MS)

    async def type_text(self, text: str) -> bool:
        aid = self._new_action_id()
        payload = {"action": "type_text", "text_length": len(text)}
        self._log_start(aid, "type_text", payload)
        start = time.time()
        try:
            target = await self.backend.focused_editable()
            if target is None:
                self._log_failure(aid, "type_text", payload, "no focused editable element")
                return False
            ok = await asyncio.wait_for(self.backend.set_text(target, text), timeout=self.gesture_timeout_sec)
        except asyncio.TimeoutError:
            self._log_failure(aid, "type_text", payload, "set_text timed out")
            return False
        except Exception as e:
            self._log_failure(aid, "type_text", payload, str(e))
            return False

        if not ok:
            self._log_failure(aid, "type_text", payload, "set_text rejected by platform")
            return False
        self._log_success(aid, "type_text", payload, time.time() - start)
        return True

    async def wait(self, duration_ms: int) -> bool:
        await asyncio.sleep(max(0, duration_ms) / 1000.0)
        return True

    # --------------------------
    # Dispatch
    # --------------------------
    async def execute(self, action) -> bool:
        kind = ActionKind(action.kind)
        try:
            if kind == ActionKind.CLICK:
                ok = await self.tap(action.x, action.y)
            elif kind == ActionKind.LONG_PRESS:
                ok = await self.long_press(action.x, action.y, action.duration_ms)
            elif kind == ActionKind.SWIPE:
                ok = await self.swipe(action.x, action.y, action.end_x, action.end_y, action.duration_ms)
            elif kind == ActionKind.SCROLL:
                ok = await self.scroll(action.direction, action.magnitude)
            elif kind == ActionKind.TYPE_TEXT:
                ok = await self.type_text(action.text)
            else:
                ok = await self.wait(action.duration_ms)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log("ERROR", "action_execute_error", "Unexpected error executing action", kind=kind.value, error=str(e))
            ok = False

        metrics.ACTIONS_DISPATCHED.labels(kind=kind.value, result="ok" if ok else "failed").inc()
        return ok

    # Generic executor for action sequences (useful for replay)
    async def execute_sequence(self, actions: list) -> List[Dict[str, Any]]:
        """
        Executes actions in order and stops at the first one that fails.
        Returns one {"kind", "label", "ok"} entry per attempted action.
        """
        results = []
        for a in actions:
            ok = await self.execute(a)
            results.append({"kind": a.kind, "label": a.label, "ok": ok})
            if not ok:
                break
        return results
