# runner/device/playwright_device.py
import asyncio
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from playwright.async_api import async_playwright, Browser, BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from runner import config
from runner.actions import ClickAction
from runner.device.base import AutomationBackend, GesturePath, GlobalAction
from runner.errors import BackendUnavailableError, GestureDispatchError
from runner.frame_buffer import Frame
from runner.logger import log
from runner.perception.ui_element import Rect, UIElement

PIXEL_7_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36"
)
GESTURE_STEP_MS = 16
TAP_BINDING = "__agentReportTap"

SNAPSHOT_JS = """() => {
    const out = [];
    const active = document.activeElement;
    const clickableTags = new Set(["A", "BUTTON", "SUMMARY", "LABEL", "SELECT"]);
    for (const el of document.querySelectorAll("body *")) {
        const r = el.getBoundingClientRect();
        if (r.width <= 0 || r.height <= 0) continue;
        const style = window.getComputedStyle(el);
        if (style.visibility === "hidden" || style.display === "none") continue;

        const tag = el.tagName;
        const role = el.getAttribute("role");
        const editable = tag === "INPUT" || tag === "TEXTAREA" || el.isContentEditable;
        const clickable = clickableTags.has(tag) || role === "button" || role === "link"
            || el.hasAttribute("onclick") || typeof el.onclick === "function"
            || style.cursor === "pointer";

        let text = "";
        for (const n of el.childNodes) {
            if (n.nodeType === Node.TEXT_NODE) text += n.textContent;
        }
        text = text.trim() || el.getAttribute("aria-label") || el.getAttribute("placeholder") || "";
        if (!text && clickable) text = (el.innerText || "").trim().slice(0, 80);
        if (!text && !clickable && !editable) continue;

        out.push({
            text: text.trim(),
            element_class: tag.toLowerCase(),
            is_clickable: clickable,
            is_editable: editable,
            is_focused: el === active,
            bounds: {
                left: Math.round(r.left), top: Math.round(r.top),
                right: Math.round(r.right), bottom: Math.round(r.bottom),
            },
        });
    }
    return out;
}"""

TAP_REPORTER_JS = """
window.addEventListener("pointerup", (e) => {
    if (typeof window.__agentReportTap !== "function") return;
    const t = e.target;
    let label = "";
    if (t) label = (t.innerText || (t.getAttribute && t.getAttribute("aria-label")) || "").trim();
    window.__agentReportTap({x: Math.round(e.clientX), y: Math.round(e.clientY), text: label.slice(0, 40)});
}, true);
"""

class ViewportSize(BaseModel):
    width: int = 412
    height: int = 915

class DeviceProfile(BaseModel):
    """
    Mobile emulation settings for the Playwright device.
    """
    model_config = ConfigDict(extra='ignore')

    headless: bool = config.HEADLESS
    start_url: str = config.PLAYWRIGHT_START_URL
    user_agent: Optional[str] = PIXEL_7_UA
    viewport: ViewportSize = Field(default_factory=ViewportSize)
    device_scale_factor: float = 2.625
    is_mobile: bool = True
    has_touch: bool = True
    observed_queue_size: int = 200

    # Chrome Args
    extra_args: List[str] = Field(default_factory=list)

    def get_playwright_args(self) -> List[str]:
        args = [
            '--no-sandbox',
            '--disable-blink-features=AutomationControlled',
            '--disable-infobars',
            '--disable-background-timer-throttling',
            '--disable-renderer-backgrounding',
        ]
        args.extend(self.extra_args)
        return args

class PlaywrightDevice(AutomationBackend):
    """
    A mobile-emulated Chromium page standing in for a phone screen.
    Useful for web-hosted match games and for running the agent without
    Android hardware.
    """

    def __init__(self, profile: Optional[DeviceProfile] = None):
        self.profile = profile or DeviceProfile()
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._observed: asyncio.Queue = asyncio.Queue(maxsize=self.profile.observed_queue_size)
        self._dispatching = False

    async def connect(self) -> None:
        """Starts the browser and opens the start URL."""
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.profile.headless,
            args=self.profile.get_playwright_args(),
        )
        self.context = await self.browser.new_context(
            viewport=self.profile.viewport.model_dump(),
            user_agent=self.profile.user_agent,
            device_scale_factor=self.profile.device_scale_factor,
            is_mobile=self.profile.is_mobile,
            has_touch=self.profile.has_touch,
        )
        await self.context.expose_binding(TAP_BINDING, self._on_user_tap)
        await self.context.add_init_script(TAP_REPORTER_JS)

        self.page = await self.context.new_page()
        if self.profile.start_url:
            await self.page.goto(self.profile.start_url)
        log("INFO", "playwright_connected", "Mobile browser session started", url=self.profile.start_url, viewport=self.profile.viewport.model_dump())

    async def close(self) -> None:
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None
        log("INFO", "playwright_closed", "Mobile browser session closed")

    def is_connected(self) -> bool:
        return self.page is not None and not self.page.is_closed()

    def _require_page(self) -> Page:
        if not self.is_connected():
            raise BackendUnavailableError("browser session not started")
        return self.page

    def screen_size(self) -> Tuple[int, int]:
        return self.profile.viewport.width, self.profile.viewport.height

    # --------------------------
    # Reads
    # --------------------------
    async def capture_ui_snapshot(self) -> List[UIElement]:
        page = self._require_page()
        raw = await page.evaluate(SNAPSHOT_JS)
        return [
            UIElement(
                text=item["text"],
                element_class=item["element_class"],
                is_clickable=item["is_clickable"],
                is_editable=item["is_editable"],
                is_focused=item["is_focused"],
                bounds=Rect(**item["bounds"]),
            )
            for item in raw
        ]

    async def capture_frame(self) -> Optional[Frame]:
        page = self._require_page()
        # css scale keeps frame pixels in the same space as gesture coordinates
        png = await page.screenshot(type="png", scale="css")
        return Frame.from_png_bytes(png)

    # --------------------------
    # Input
    # --------------------------
    async def dispatch_gesture(self, path: GesturePath, duration_ms: int) -> bool:
        page = self._require_page()
        mouse = page.mouse
        self._dispatching = True
        try:
            x0, y0 = path.start
            await mouse.move(x0, y0)
            await mouse.down()
            if len(path.points) == 1:
                await asyncio.sleep(duration_ms / 1000.0)
            else:
                segments = len(path.points) - 1
                per_segment = duration_ms / segments
                for x, y in path.points[1:]:
                    steps = max(1, int(per_segment // GESTURE_STEP_MS))
                    await mouse.move(x, y, steps=steps)
                    await asyncio.sleep(per_segment / 1000.0)
            await mouse.up()
        except PlaywrightError as e:
            raise GestureDispatchError(f"pointer gesture failed: {e}") from e
        finally:
            self._dispatching = False
        return True

    async def set_text(self, element: UIElement, text: str) -> bool:
        self._require_editable(element)
        page = self._require_page()
        await page.keyboard.insert_text(text)
        return True

    async def global_action(self, kind: GlobalAction) -> bool:
        page = self._require_page()
        kind = GlobalAction(kind)
        if kind == GlobalAction.BACK:
            await page.go_back()
            return True
        if kind == GlobalAction.HOME:
            await page.goto(self.profile.start_url)
            return True
        return False

    # --------------------------
    # Learning
    # --------------------------
    def _on_user_tap(self, source, payload):
        if self._dispatching:
            return
        text = (payload.get("text") or "").strip()
        action = ClickAction(
            x=max(0, int(payload.get("x", 0))),
            y=max(0, int(payload.get("y", 0))),
            label=f"User: {text}" if text else "User tap",
            origin_sequence_id="user_observed",
        )
        try:
            self._observed.put_nowait(action)
        except asyncio.QueueFull:
            log("WARN", "playwright_observed_dropped", "Observed tap dropped; queue full")

    async def observed_actions(self):
        while True:
            yield await self._observed.get()
