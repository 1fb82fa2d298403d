# tests/test_action_executor.py
import asyncio
import random

import pytest

from runner.action_executor import ActionExecutor
from runner.actions import ClickAction, LongPressAction, ScrollAction, SwipeAction, TypeTextAction, WaitAction

class SlowBackend:
    """Only the parts the executor touches; dispatch never finishes in time."""

    def screen_size(self):
        return (100, 100)

    async def dispatch_gesture(self, path, duration_ms):
        await asyncio.sleep(10)
        return True

class ExplodingBackend(SlowBackend):
    async def dispatch_gesture(self, path, duration_ms):
        raise RuntimeError("accessibility service died")

@pytest.mark.asyncio
async def test_plain_tap(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.tap(10, 20) is True
    path, duration = backend.gestures[0]
    assert path.points == [(10, 20)]
    assert duration == 50

@pytest.mark.asyncio
async def test_humanized_tap_stays_near_target(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=True, rng=random.Random(7))
    for _ in range(20):
        assert await ae.tap(500, 800)
    for path, duration in backend.gestures:
        (x0, y0), (x1, y1) = path.points
        assert abs(x0 - 500) <= 5 and abs(y0 - 800) <= 5
        assert (x1 - x0, y1 - y0) == (2, 2)
        assert 80 <= duration <= 130

@pytest.mark.asyncio
async def test_humanized_tap_at_corner_stays_on_screen(make_backend):
    backend = make_backend(size=(1080, 1920))
    ae = ActionExecutor(backend, humanize=True, rng=random.Random(3))
    for _ in range(30):
        assert await ae.tap(1079, 1919)
        assert await ae.long_press(1079, 1919, duration_ms=10)
    assert len(backend.gestures) == 60
    for path, _ in backend.gestures:
        for x, y in path.points:
            assert 1069 <= x <= 1079
            assert 1909 <= y <= 1919

@pytest.mark.asyncio
async def test_negative_coordinates_are_rejected(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.tap(-1, 10) is False
    assert await ae.swipe(0, 0, 10, -5) is False
    assert backend.gestures == []

@pytest.mark.asyncio
async def test_rejected_dispatch_is_false(make_backend):
    ae = ActionExecutor(make_backend(accept=False), humanize=False)
    assert await ae.tap(1, 1) is False

@pytest.mark.asyncio
async def test_gesture_timeout_is_false():
    ae = ActionExecutor(SlowBackend(), humanize=False, gesture_timeout_sec=0.01)
    assert await ae.tap(1, 1) is False

@pytest.mark.asyncio
async def test_backend_exception_is_false():
    ae = ActionExecutor(ExplodingBackend(), humanize=False)
    assert await ae.execute(ClickAction(x=1, y=1)) is False

@pytest.mark.asyncio
async def test_long_press_holds(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.execute(LongPressAction(x=5, y=5, duration_ms=900))
    assert backend.gestures[0][1] == 900

@pytest.mark.asyncio
async def test_swipe_default_duration(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.execute(SwipeAction(x=10, y=500, end_x=10, end_y=100))
    path, duration = backend.gestures[0]
    assert path.start == (10, 500) and path.end == (10, 100)
    assert duration == 300

@pytest.mark.asyncio
@pytest.mark.parametrize("direction, end", [
    ("DOWN", (540, 460)),
    ("UP", (540, 1460)),
    ("LEFT", (1040, 960)),
    ("RIGHT", (40, 960)),
])
async def test_scroll_from_screen_center(make_backend, direction, end):
    backend = make_backend(size=(1080, 1920))
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.execute(ScrollAction(direction=direction))
    path, _ = backend.gestures[0]
    assert path.start == (540, 960)
    assert path.end == end

@pytest.mark.asyncio
async def test_scroll_end_is_clamped(make_backend):
    backend = make_backend(size=(100, 200))
    ae = ActionExecutor(backend, humanize=False)
    assert await ae.scroll("UP", magnitude=5000)
    assert backend.gestures[0][0].end == (50, 199)

@pytest.mark.asyncio
async def test_type_text_needs_focused_editable(make_backend, make_element):
    backend = make_backend(elements=[make_element("", editable=True, focused=False)])
    ae = ActionExecutor(backend)
    assert await ae.execute(TypeTextAction(text="hello")) is False

    field = make_element("", editable=True, focused=True, element_class="android.widget.EditText")
    backend.elements.append(field)
    assert await ae.execute(TypeTextAction(text="hello")) is True
    assert backend.texts == [(field, "hello")]

@pytest.mark.asyncio
async def test_wait_is_always_true(make_backend):
    assert await ActionExecutor(make_backend()).execute(WaitAction(duration_ms=0)) is True

@pytest.mark.asyncio
async def test_sequence_stops_at_first_failure(make_backend):
    backend = make_backend()
    ae = ActionExecutor(backend, humanize=False)
    actions = [
        ClickAction(x=1, y=1, label="first"),
        TypeTextAction(text="nobody is focused", label="second"),
        ClickAction(x=2, y=2, label="third"),
    ]
    results = await ae.execute_sequence(actions)
    assert [r["label"] for r in results] == ["first", "second"]
    assert [r["ok"] for r in results] == [True, False]
    assert len(backend.gestures) == 1
