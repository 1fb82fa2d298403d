# tests/test_decision_engine.py
import pytest

from reasoner.backend import CompletionBackend
from reasoner.reasoner import Reasoner
from runner.decision_engine import DecisionEngine
from runner.perception.grid_matcher import GridMatcher, GridMatcherConfig
from runner.perception.menu_heuristic import MenuHeuristic

class BrokenBackend(CompletionBackend):
    @property
    def is_ready(self):
        return True

    async def complete_text(self, prompt):
        raise RuntimeError("connection reset")

class ScriptedBackend(CompletionBackend):
    def __init__(self, reply, ready=True):
        self.reply = reply
        self.ready = ready

    @property
    def is_ready(self):
        return self.ready

    async def complete_text(self, prompt):
        return self.reply

def _engine(backend=None, policy="hand_vs_board"):
    menu = MenuHeuristic()
    reasoner = Reasoner(backend, menu_heuristic=menu) if backend is not None else None
    return DecisionEngine(menu, GridMatcher(GridMatcherConfig.for_policy(policy)), reasoner=reasoner)

def _domino_frame(make_frame):
    return make_frame(fill=(10, 10, 10), paint=[
        ((0, 680, 400, 730), (200, 50, 50)),
        ((150, 200, 200, 240), (205, 48, 52)),
    ])

@pytest.mark.asyncio
async def test_menu_wins_over_grid(make_element, make_frame):
    engine = _engine()
    elements = [make_element("No Thanks", clickable=True, bounds=(0, 0, 100, 40))]
    action = await engine.decide(_domino_frame(make_frame), elements)
    assert action.origin_sequence_id == "menu_auto"
    assert (action.x, action.y) == (50, 20)

@pytest.mark.asyncio
async def test_grid_runs_when_no_menu(make_element, make_frame):
    engine = _engine()
    action = await engine.decide(_domino_frame(make_frame), [make_element("Score", clickable=False)])
    assert action.origin_sequence_id == "domino_match"

@pytest.mark.asyncio
async def test_no_frame_and_no_menu_is_no_action(make_element):
    assert await _engine().decide(None, [make_element("Settings", clickable=True)]) is None

@pytest.mark.asyncio
async def test_reasoner_error_equals_menu_result(make_element):
    elements = [
        make_element("Shop", clickable=True, bounds=(0, 0, 50, 50)),
        make_element("Claim", clickable=True, bounds=(100, 100, 200, 140)),
    ]
    engine = _engine(BrokenBackend())
    assert engine.is_reasoning_ready
    action = await engine.decide(None, elements)
    expected = MenuHeuristic().find_menu_action(elements)
    assert (action.x, action.y, action.label, action.origin_sequence_id) == (expected.x, expected.y, expected.label, expected.origin_sequence_id)

@pytest.mark.asyncio
async def test_reasoner_used_when_ready(make_element):
    elements = [
        make_element("Claim", clickable=True, bounds=(0, 0, 50, 50)),
        make_element("Shop", clickable=True, bounds=(100, 100, 200, 140)),
    ]
    action = await _engine(ScriptedBackend("Shop")).decide(None, elements)
    assert action.origin_sequence_id == "llm_reasoning"
    assert (action.x, action.y) == (150, 120)

@pytest.mark.asyncio
async def test_reasoner_not_ready_uses_menu(make_element):
    engine = _engine(ScriptedBackend("Shop", ready=False))
    assert not engine.is_reasoning_ready
    action = await engine.decide(None, [make_element("Retry", clickable=True)])
    assert action.origin_sequence_id == "menu_auto"

@pytest.mark.asyncio
async def test_reasoner_none_falls_through_to_grid(make_element, make_frame):
    engine = _engine(ScriptedBackend("NONE"))
    action = await engine.decide(_domino_frame(make_frame), [make_element("Claim", clickable=True)])
    assert action.origin_sequence_id == "domino_match"
