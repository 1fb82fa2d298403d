# runner/automation_loop.py
import asyncio
import random
import threading
import time
import traceback
from enum import Enum
from typing import List, Literal, Optional, Set, Tuple

from pydantic import BaseModel, Field

from . import config, metrics
from .actions import Action
from .logger import log

class ProcessingMode(str, Enum):
    IDLE = "IDLE"
    LEARNING = "LEARNING"
    AUTOMATION = "AUTOMATION"

# LEARNING and AUTOMATION only ever meet through IDLE
ALLOWED_TRANSITIONS = {
    (ProcessingMode.IDLE, ProcessingMode.LEARNING),
    (ProcessingMode.IDLE, ProcessingMode.AUTOMATION),
    (ProcessingMode.LEARNING, ProcessingMode.IDLE),
    (ProcessingMode.AUTOMATION, ProcessingMode.IDLE),
}

class LoopEvent(BaseModel):
    type: Literal["action", "diagnostic", "mode"]
    mode: ProcessingMode
    message: str = ""
    action: Optional[Action] = None
    dispatched: Optional[bool] = None
    ts: float = Field(default_factory=time.time)

class LoopStatus(BaseModel):
    mode: ProcessingMode
    is_reasoning_ready: bool
    backend_connected: bool
    iterations: int
    actions_dispatched: int
    learned_buffer: int
    last_action: Optional[Action] = None

class AutomationLoop:
    """
    Owns the processing mode and the background task that goes with it.

    AUTOMATION runs a sample -> decide -> act -> sleep cycle until the mode
    changes or the automation backend disappears. An error only costs the
    iteration it happened in; the loop backs off and carries on.
    LEARNING collects the actions the backend observes and saves them when
    the mode goes back to IDLE.
    """

    def __init__(
        self,
        backend,
        frame_buffer,
        decision_engine,
        executor,
        store=None,
        scan_interval_sec: float = config.SCAN_INTERVAL_SEC,
        reaction_delay_sec: Tuple[float, float] = (config.REACTION_DELAY_MIN_SEC, config.REACTION_DELAY_MAX_SEC),
        error_backoff_sec: float = config.ERROR_BACKOFF_SEC,
        event_queue_size: int = config.EVENT_QUEUE_SIZE,
        rng: Optional[random.Random] = None,
    ):
        self.backend = backend
        self.frame_buffer = frame_buffer
        self.decision_engine = decision_engine
        self.executor = executor
        self.store = store
        self.scan_interval_sec = scan_interval_sec
        self.reaction_delay_sec = reaction_delay_sec
        self.error_backoff_sec = error_backoff_sec
        self.event_queue_size = event_queue_size
        self.rng = rng or random.Random()

        self._mode = ProcessingMode.IDLE
        self._mode_lock = threading.Lock()
        self._transition_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._subscribers: Set[asyncio.Queue] = set()
        self._learned: List = []

        self.iterations = 0
        self.actions_dispatched = 0
        self.last_action = None
        metrics.set_mode_gauge(self._mode.value, [m.value for m in ProcessingMode])

    # --------------------------
    # Mode
    # --------------------------
    @property
    def mode(self) -> ProcessingMode:
        with self._mode_lock:
            return self._mode

    def _set_mode_value(self, mode: ProcessingMode):
        with self._mode_lock:
            self._mode = mode
        metrics.set_mode_gauge(mode.value, [m.value for m in ProcessingMode])
        self._publish(LoopEvent(type="mode", mode=mode, message=f"Mode is now {mode.value}"))

    async def set_mode(self, mode) -> bool:
        """
        Requests a mode change. Returns False when the request is not a legal
        transition; the reason goes to the diagnostic channel, never raised.
        """
        try:
            target = ProcessingMode(mode)
        except ValueError:
            self._report(f"Unknown processing mode: {mode!r}")
            return False

        async with self._transition_lock:
            current = self.mode
            if target == current:
                return True
            if (current, target) not in ALLOWED_TRANSITIONS:
                self._report(f"Illegal mode transition {current.value} -> {target.value}; go through IDLE")
                return False

            log("INFO", "mode_change", "Processing mode change", previous=current.value, mode=target.value)
            if target == ProcessingMode.IDLE:
                await self._stop(current)
            elif target == ProcessingMode.AUTOMATION:
                self._set_mode_value(ProcessingMode.AUTOMATION)
                self._task = asyncio.create_task(self._run_automation())
            else:
                self._learned = []
                self._set_mode_value(ProcessingMode.LEARNING)
                self._task = asyncio.create_task(self._run_learning())
            return True

    async def _stop(self, previous: ProcessingMode):
        self._set_mode_value(ProcessingMode.IDLE)
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if previous == ProcessingMode.LEARNING and self._learned:
            actions, self._learned = self._learned, []
            self._spawn(self._save_learned(actions))

    async def join(self, timeout: Optional[float] = None):
        """Waits until the current mode task has finished on its own."""
        task = self._task
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)

    async def shutdown(self):
        await self.set_mode(ProcessingMode.IDLE)
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self.frame_buffer.clear()
        log("INFO", "loop_shutdown", "Automation loop shut down")

    # --------------------------
    # Status & notifications
    # --------------------------
    def status(self) -> LoopStatus:
        connected = False
        if self.backend is not None:
            try:
                connected = bool(self.backend.is_connected())
            except Exception:
                connected = False
        return LoopStatus(
            mode=self.mode,
            is_reasoning_ready=self.decision_engine.is_reasoning_ready,
            backend_connected=connected,
            iterations=self.iterations,
            actions_dispatched=self.actions_dispatched,
            learned_buffer=len(self._learned),
            last_action=self.last_action,
        )

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.event_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)

    def _publish(self, event: LoopEvent):
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                pass

    def _report(self, message: str, level: str = "WARN", **kwargs):
        log(level, "loop_diagnostic", message, mode=self.mode.value, **kwargs)
        self._publish(LoopEvent(type="diagnostic", mode=self.mode, message=message))

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # --------------------------
    # AUTOMATION
    # --------------------------
    def _reaction_delay(self) -> float:
        low, high = self.reaction_delay_sec
        return self.rng.uniform(low, high)

    async def _run_automation(self):
        log("INFO", "automation_started", "Automation loop started")
        try:
            while self.mode == ProcessingMode.AUTOMATION:
                try:
                    if self.backend is None or not self.backend.is_connected():
                        self._report("Automation API not connected; returning to IDLE", level="ERROR")
                        self._set_mode_value(ProcessingMode.IDLE)
                        return

                    self.iterations += 1
                    metrics.LOOP_ITERATIONS.inc()

                    frame = self.frame_buffer.latest()
                    elements = await self.backend.capture_ui_snapshot()
                    action = await self.decision_engine.decide(frame, elements)
                    frame = None

                    if action is not None:
                        ok = await self.executor.execute(action)
                        self._record_dispatch(action, ok)
                        if ok:
                            # let the UI animation settle before looking again
                            await asyncio.sleep(self._reaction_delay())

                    await asyncio.sleep(self.scan_interval_sec)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    metrics.LOOP_ERRORS.inc()
                    self._report("Automation iteration failed", level="ERROR", error=str(e), tb=traceback.format_exc())
                    await asyncio.sleep(self.error_backoff_sec)
        finally:
            log("INFO", "automation_stopped", "Automation loop stopped", iterations=self.iterations)

    def _record_dispatch(self, action, ok: bool):
        self.last_action = action
        if ok:
            self.actions_dispatched += 1
        self._publish(LoopEvent(
            type="action",
            mode=self.mode,
            message=action.label,
            action=action,
            dispatched=ok,
        ))

    # --------------------------
    # LEARNING
    # --------------------------
    def record_observed_action(self, action) -> bool:
        if self.mode != ProcessingMode.LEARNING:
            return False
        self._learned.append(action)
        log("DEBUG", "learning_recorded", "Observed action recorded", kind=action.kind, label=action.label, buffered=len(self._learned))
        return True

    async def _run_learning(self):
        log("INFO", "learning_started", "Learning mode started")
        if self.backend is None:
            self._report("No automation backend; nothing to observe")
            return
        try:
            async for action in self.backend.observed_actions():
                if self.mode != ProcessingMode.LEARNING:
                    break
                self.record_observed_action(action)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report("Observing user actions failed", level="ERROR", error=str(e))

    async def _save_learned(self, actions: list):
        if self.store is None:
            log("WARN", "learning_not_saved", "No action store configured; dropping learned actions", count=len(actions))
            return
        try:
            await self.store.persist_actions(actions)
            await self.store.persist_model_update(actions)
        except Exception as e:
            log("ERROR", "learning_save_failed", "Saving learned actions failed", count=len(actions), error=str(e))
