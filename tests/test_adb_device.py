# tests/test_adb_device.py
from types import SimpleNamespace

import pytest

from runner.device.adb_device import AdbDevice, adb_text_escape, parse_bounds, parse_ui_dump, parse_wm_size
from runner.device.base import GesturePath, GlobalAction
from runner.errors import ActionExecutionError, AdbError

UI_DUMP = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" class="android.widget.FrameLayout" clickable="false" focused="false" bounds="[0,0][1080,1920]">
    <node index="0" text="Level 12" class="android.widget.TextView" clickable="false" focused="false" bounds="[40,100][400,160]" />
    <node index="1" text="" content-desc="Close" class="android.widget.ImageButton" clickable="true" focused="false" bounds="[980,40][1060,120]" />
    <node index="2" text="" class="android.widget.EditText" clickable="true" focused="true" bounds="[40,300][1040,400]" />
    <node index="3" text="" class="android.view.View" clickable="false" focused="false" bounds="[0,500][1080,900]" />
  </node>
</hierarchy>UI hierchary dumped to: /dev/tty"""

class ScriptedAdb(AdbDevice):
    """Replays canned adb output and records the commands it was given."""

    def __init__(self, outputs=None, **kwargs):
        super().__init__(adb_path="adb", serial="emulator-5554", **kwargs)
        self.outputs = list(outputs or [])
        self.commands = []

    def _run_sync(self, args, text=True):
        self.commands.append(list(args))
        out = self.outputs.pop(0) if self.outputs else ""
        if isinstance(out, Exception):
            raise out
        return SimpleNamespace(stdout=out, stderr="", returncode=0)

def test_parse_ui_dump_keeps_text_and_clickable_nodes():
    elements = parse_ui_dump(UI_DUMP)
    assert [el.text for el in elements] == ["Level 12", "Close", ""]
    close = elements[1]
    assert close.is_clickable
    assert (close.bounds.center_x, close.bounds.center_y) == (1020, 80)
    field = elements[2]
    assert field.is_editable and field.is_focused
    assert not elements[0].is_clickable

def test_parse_ui_dump_rejects_garbage():
    with pytest.raises(AdbError):
        parse_ui_dump("ERROR: null root node returned by UiTestAutomationBridge.")

def test_parse_bounds():
    rect = parse_bounds("[10,20][110,60]")
    assert (rect.left, rect.top, rect.right, rect.bottom) == (10, 20, 110, 60)
    assert parse_bounds("") is None

def test_parse_wm_size_prefers_override():
    assert parse_wm_size("Physical size: 1080x2400\n") == (1080, 2400)
    assert parse_wm_size("Physical size: 1080x2400\nOverride size: 720x1600\n") == (720, 1600)
    assert parse_wm_size("nothing here") is None

def test_text_escape():
    assert adb_text_escape("no thanks") == "no%sthanks"
    assert adb_text_escape("a&b") == "a\\&b"
    assert adb_text_escape("it's") == "it\\'s"

@pytest.mark.asyncio
async def test_connect_reads_state_and_size():
    device = ScriptedAdb(outputs=["device\n", "Physical size: 1080x1920\n"])
    await device.connect()
    assert device.is_connected()
    assert device.screen_size() == (1080, 1920)
    assert device.commands[0] == ["get-state"]
    assert device.commands[1] == ["shell", "wm", "size"]

@pytest.mark.asyncio
async def test_connect_failure_leaves_device_disconnected():
    device = ScriptedAdb(outputs=[AdbError("no devices/emulators found")])
    await device.connect()
    assert not device.is_connected()
    with pytest.raises(AdbError):
        device.screen_size()

@pytest.mark.asyncio
async def test_gestures_become_input_swipe():
    device = ScriptedAdb()
    path = GesturePath(points=[(10.4, 20.6), (12.4, 22.6)])
    assert await device.dispatch_gesture(path, 95) is True
    assert device.commands[-1] == ["shell", "input", "swipe", "10", "21", "12", "23", "95"]

@pytest.mark.asyncio
async def test_set_text_and_global_action():
    device = ScriptedAdb()
    field = parse_ui_dump(UI_DUMP)[2]
    assert await device.set_text(field, "go go") is True
    assert device.commands[-1] == ["shell", "input", "text", "go%sgo"]
    assert await device.global_action(GlobalAction.BACK) is True
    assert device.commands[-1] == ["shell", "input", "keyevent", "4"]

@pytest.mark.asyncio
async def test_snapshot_is_retried_once():
    device = ScriptedAdb(outputs=[AdbError("uiautomator busy"), UI_DUMP])
    elements = await device.capture_ui_snapshot()
    assert len(elements) == 3
    assert device.commands == [["exec-out", "uiautomator", "dump", "/dev/tty"]] * 2

@pytest.mark.asyncio
async def test_text_needs_editable_target():
    device = ScriptedAdb()
    label = parse_ui_dump(UI_DUMP)[0]
    with pytest.raises(ActionExecutionError):
        await device.set_text(label, "hi")
    assert device.commands == []
