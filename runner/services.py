# runner/services.py
from dataclasses import dataclass
from typing import Optional

from reasoner.backend import LangChainCompletionBackend
from reasoner.reasoner import Reasoner
from runner import config
from runner.action_executor import ActionExecutor
from runner.automation_loop import AutomationLoop
from runner.decision_engine import DecisionEngine
from runner.device.base import AutomationBackend
from runner.frame_buffer import FrameBuffer, FrameCaptureService
from runner.logger import log
from runner.perception.grid_matcher import GridMatcher, GridMatcherConfig
from runner.perception.menu_heuristic import MenuHeuristic
from utils.storage import ActionStore

def create_backend(kind: str = config.DEVICE_BACKEND) -> AutomationBackend:
    kind = (kind or "").strip().lower()
    if kind == "adb":
        from runner.device.adb_device import AdbDevice
        return AdbDevice()
    if kind == "playwright":
        from runner.device.playwright_device import PlaywrightDevice
        return PlaywrightDevice()
    raise ValueError(f"Unknown device backend: {kind!r} (expected 'adb' or 'playwright')")

@dataclass
class AgentServices:
    backend: AutomationBackend
    frame_buffer: FrameBuffer
    capture: FrameCaptureService
    executor: ActionExecutor
    loop: AutomationLoop
    store: ActionStore

    async def start(self):
        await self.backend.connect()
        self.capture.start()
        log("INFO", "services_started", "Agent services started", backend=type(self.backend).__name__, connected=self.backend.is_connected())

    async def stop(self):
        await self.loop.shutdown()
        await self.capture.stop()
        await self.backend.close()
        log("INFO", "services_stopped", "Agent services stopped")

def build_services(
    backend: Optional[AutomationBackend] = None,
    grid_policy: str = config.GRID_POLICY,
    store: Optional[ActionStore] = None,
    reasoner: Optional[Reasoner] = None,
) -> AgentServices:
    """Wires the loop and its collaborators. Nothing is started here."""
    backend = backend or create_backend()
    menu = MenuHeuristic()
    if reasoner is None:
        reasoner = Reasoner(LangChainCompletionBackend(), menu_heuristic=menu)
    engine = DecisionEngine(
        menu_heuristic=menu,
        grid_matcher=GridMatcher(GridMatcherConfig.for_policy(grid_policy)),
        reasoner=reasoner,
    )
    frame_buffer = FrameBuffer()
    executor = ActionExecutor(backend)
    store = store or ActionStore()
    loop = AutomationLoop(backend, frame_buffer, engine, executor, store=store)
    capture = FrameCaptureService(backend, frame_buffer, interval_sec=config.FRAME_CAPTURE_INTERVAL_SEC)
    return AgentServices(
        backend=backend,
        frame_buffer=frame_buffer,
        capture=capture,
        executor=executor,
        loop=loop,
        store=store,
    )
