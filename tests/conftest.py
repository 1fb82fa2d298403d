# tests/conftest.py
import asyncio

import numpy as np
import pytest

from runner.device.base import AutomationBackend
from runner.frame_buffer import Frame
from runner.perception.ui_element import Rect, UIElement

class FakeBackend(AutomationBackend):
    """In-memory device: records every gesture and text entry it receives."""

    def __init__(self, connected=True, elements=None, frame=None, size=(1080, 1920), accept=True, observed=None):
        self.connected = connected
        self.elements = list(elements or [])
        self.frame = frame
        self.size = size
        self.accept = accept
        self.observed = list(observed or [])
        self.gestures = []
        self.texts = []

    def is_connected(self):
        return self.connected

    def screen_size(self):
        return self.size

    async def capture_ui_snapshot(self):
        return list(self.elements)

    async def capture_frame(self):
        return self.frame

    async def dispatch_gesture(self, path, duration_ms):
        self.gestures.append((path, duration_ms))
        return self.accept

    async def set_text(self, element, text):
        self.texts.append((element, text))
        return True

    async def observed_actions(self):
        for action in self.observed:
            yield action
        # keep listening like a real device would, until cancelled
        await asyncio.Event().wait()

@pytest.fixture
def make_backend():
    def _make(**kwargs):
        return FakeBackend(**kwargs)
    return _make

@pytest.fixture
def make_element():
    def _make(text="", bounds=(0, 0, 100, 40), clickable=False, editable=False, focused=False, element_class="android.widget.Button"):
        left, top, right, bottom = bounds
        return UIElement(
            text=text,
            element_class=element_class,
            is_clickable=clickable,
            is_editable=editable,
            is_focused=focused,
            bounds=Rect(left=left, top=top, right=right, bottom=bottom),
        )
    return _make

@pytest.fixture
def make_frame():
    """Builds a frame filled with `fill`; `paint` is a list of ((x0, y0, x1, y1), rgb)."""
    def _make(width=400, height=800, fill=(10, 10, 10), paint=()):
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[:, :] = fill
        for (x0, y0, x1, y1), rgb in paint:
            pixels[y0:y1, x0:x1] = rgb
        return Frame(pixels)
    return _make
