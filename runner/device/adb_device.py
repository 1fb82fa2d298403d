# runner/device/adb_device.py
import asyncio
import re
import subprocess
import xml.etree.ElementTree as ET
from typing import List, Optional, Sequence, Tuple

from runner import config
from runner.device.base import AutomationBackend, GesturePath, GlobalAction
from runner.errors import AdbError, GestureDispatchError
from runner.frame_buffer import Frame
from runner.logger import log
from runner.perception.ui_element import Rect, UIElement
from utils.retry import async_retry

BOUNDS_RE = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")
WM_SIZE_RE = re.compile(r"(\d+)x(\d+)")

KEYCODES = {
    GlobalAction.BACK: 4,
    GlobalAction.HOME: 3,
    GlobalAction.RECENTS: 187,
    GlobalAction.NOTIFICATIONS: 83,
}

def adb_text_escape(text: str) -> str:
    """Escapes text for `input text`, which splits on spaces and runs through sh."""
    escaped = []
    for ch in text:
        if ch == " ":
            escaped.append("%s")
        elif ch in "\\'\"&|<>;()$`*~#?!":
            escaped.append("\\" + ch)
        else:
            escaped.append(ch)
    return "".join(escaped)

def parse_bounds(value: str) -> Optional[Rect]:
    match = BOUNDS_RE.search(value or "")
    if not match:
        return None
    left, top, right, bottom = (int(g) for g in match.groups())
    return Rect(left=left, top=top, right=right, bottom=bottom)

def parse_wm_size(output: str) -> Optional[Tuple[int, int]]:
    override = None
    physical = None
    for line in output.splitlines():
        match = WM_SIZE_RE.search(line)
        if not match:
            continue
        size = (int(match.group(1)), int(match.group(2)))
        if "Override size" in line:
            override = size
        elif "Physical size" in line:
            physical = size
    return override or physical

def _flag(node, name: str) -> bool:
    return node.get(name, "false").lower() == "true"

def parse_ui_dump(xml_text: str) -> List[UIElement]:
    """
    Flattens a `uiautomator dump` hierarchy into UIElements.
    Keeps nodes that carry text (or a content description) or are clickable;
    layout-only containers are dropped.
    """
    start = xml_text.find("<")
    end = xml_text.rfind(">")
    if start < 0 or end < start:
        raise AdbError("ui dump contained no XML")
    try:
        root = ET.fromstring(xml_text[start:end + 1])
    except ET.ParseError as e:
        raise AdbError(f"unreadable ui dump: {e}") from e

    elements = []
    for node in root.iter("node"):
        bounds = parse_bounds(node.get("bounds", ""))
        if bounds is None:
            continue
        text = (node.get("text") or node.get("content-desc") or "").strip()
        clickable = _flag(node, "clickable")
        if not text and not clickable:
            continue
        cls = node.get("class", "")
        elements.append(UIElement(
            text=text,
            element_class=cls,
            is_clickable=clickable,
            is_editable=cls.endswith("EditText"),
            is_focused=_flag(node, "focused"),
            bounds=bounds,
        ))
    return elements

class AdbDevice(AutomationBackend):
    """
    Android device driven through the adb command line.
    Every adb call is a blocking subprocess, so it runs in a worker thread.
    """

    def __init__(
        self,
        adb_path: str = config.ADB_PATH,
        serial: Optional[str] = config.ADB_SERIAL,
        timeout: float = config.ADB_COMMAND_TIMEOUT_SEC,
    ):
        self.adb_path = adb_path
        self.serial = serial
        self.timeout = timeout
        self._connected = False
        self._screen_size: Optional[Tuple[int, int]] = None

    # --------------------------
    # Transport
    # --------------------------
    def _base_cmd(self) -> List[str]:
        cmd = [self.adb_path]
        if self.serial:
            cmd += ["-s", self.serial]
        return cmd

    def _run_sync(self, args: Sequence[str], text: bool = True):
        cmd = self._base_cmd() + list(args)
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=self.timeout, text=text)
        except FileNotFoundError as e:
            self._connected = False
            raise AdbError(f"adb executable not found: {self.adb_path}") from e
        except subprocess.TimeoutExpired as e:
            raise AdbError(f"adb timed out after {self.timeout}s: {' '.join(cmd)}") from e
        if result.returncode != 0:
            stderr = result.stderr if text else result.stderr.decode("utf-8", "replace")
            if "device" in stderr and ("not found" in stderr or "offline" in stderr):
                self._connected = False
            raise AdbError(f"adb failed: {' '.join(cmd)}\n{stderr.strip()}")
        return result

    async def _run(self, args: Sequence[str], text: bool = True):
        return await asyncio.to_thread(self._run_sync, args, text)

    async def shell(self, args: Sequence[str]) -> str:
        result = await self._run(["shell"] + list(args))
        return result.stdout

    # --------------------------
    # Lifecycle
    # --------------------------
    async def connect(self) -> None:
        try:
            result = await self._run(["get-state"])
        except AdbError as e:
            self._connected = False
            log("ERROR", "adb_connect_failed", "No adb device available", serial=self.serial, error=str(e))
            return
        self._connected = result.stdout.strip() == "device"
        if self._connected:
            try:
                self._screen_size = await self._read_screen_size()
            except AdbError as e:
                log("WARN", "adb_screen_size_failed", "Could not read screen size", error=str(e))
        log("INFO", "adb_connected", "adb device state read", serial=self.serial, connected=self._connected, screen_size=self._screen_size)

    async def close(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is None:
            raise AdbError("screen size unknown; device not connected")
        return self._screen_size

    async def _read_screen_size(self) -> Tuple[int, int]:
        size = parse_wm_size(await self.shell(["wm", "size"]))
        if size is None:
            raise AdbError("could not parse `wm size` output")
        return size

    # --------------------------
    # Reads
    # --------------------------
    @async_retry(retries=1, delay=0.3, exceptions=(AdbError,))
    async def capture_ui_snapshot(self) -> List[UIElement]:
        result = await self._run(["exec-out", "uiautomator", "dump", "/dev/tty"])
        return parse_ui_dump(result.stdout)

    @async_retry(retries=1, delay=0.3, exceptions=(AdbError,))
    async def capture_frame(self) -> Optional[Frame]:
        result = await self._run(["exec-out", "screencap", "-p"], text=False)
        if not result.stdout:
            return None
        return Frame.from_png_bytes(result.stdout)

    # --------------------------
    # Input
    # --------------------------
    async def dispatch_gesture(self, path: GesturePath, duration_ms: int) -> bool:
        (x1, y1), (x2, y2) = path.start, path.end
        # `input swipe` with equal endpoints is a tap that honors the duration
        args = ["input", "swipe"] + [str(int(round(v))) for v in (x1, y1, x2, y2)] + [str(int(duration_ms))]
        try:
            await self.shell(args)
        except AdbError as e:
            raise GestureDispatchError(f"input swipe failed: {e}") from e
        return True

    async def set_text(self, element: UIElement, text: str) -> bool:
        self._require_editable(element)
        if not text:
            return True
        await self.shell(["input", "text", adb_text_escape(text)])
        return True

    async def global_action(self, kind: GlobalAction) -> bool:
        keycode = KEYCODES.get(GlobalAction(kind))
        if keycode is None:
            return False
        await self.shell(["input", "keyevent", str(keycode)])
        return True
