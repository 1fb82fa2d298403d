# tests/test_grid_matcher.py
import pytest

from runner.perception.color import sample_window
from runner.perception.grid_matcher import GridMatcher, GridMatcherConfig, GridPolicy

DARK = (10, 10, 10)

def test_domino_hand_matches_single_board_cell(make_frame):
    # 400x800: board cells are 50x40 starting at y=120, hand sampled at (200, 704)
    frame = make_frame(
        width=400,
        height=800,
        fill=DARK,
        paint=[
            ((0, 680, 400, 730), (200, 50, 50)),
            ((150, 200, 200, 240), (205, 48, 52)),
        ],
    )
    matcher = GridMatcher(GridMatcherConfig.hand_vs_board())
    action = matcher.find_visual_match(frame)
    assert action is not None
    assert action.kind == "CLICK"
    assert (action.x, action.y) == (175, 220)
    assert action.confidence >= 0.9
    assert action.origin_sequence_id == "domino_match"
    assert action.label == "Found Match! (2,3)"

def test_domino_dark_hand_plays_nothing(make_frame):
    frame = make_frame(fill=DARK, paint=[((150, 200, 200, 240), DARK)])
    assert GridMatcher(GridMatcherConfig.hand_vs_board()).find_domino_match(frame) is None

def test_domino_without_similar_board_cell(make_frame):
    frame = make_frame(fill=DARK, paint=[((0, 680, 400, 730), (200, 50, 50))])
    assert GridMatcher(GridMatcherConfig.hand_vs_board()).find_domino_match(frame) is None

def test_pairwise_taps_first_cell_of_first_similar_pair(make_frame):
    # 400x800 pairwise grid: 100x93 cells starting at y=120
    frame = make_frame(
        fill=DARK,
        paint=[
            ((100, 120, 200, 213), (50, 200, 50)),
            ((0, 213, 100, 306), (200, 40, 40)),
            ((200, 399, 300, 492), (52, 198, 51)),
        ],
    )
    action = GridMatcher().find_visual_match(frame)
    assert action is not None
    assert (action.x, action.y) == (150, 166)
    assert action.label == "Match Found: (0,1) ~ (3,2)"
    assert action.origin_sequence_id == "tile_match"

def test_pairwise_ignores_dark_cells(make_frame):
    frame = make_frame(fill=DARK)
    assert GridMatcher().find_pairwise_match(frame) is None

def test_pairwise_no_similar_pair(make_frame):
    frame = make_frame(
        fill=DARK,
        paint=[
            ((0, 120, 100, 213), (250, 20, 20)),
            ((100, 120, 200, 213), (20, 250, 20)),
            ((200, 120, 300, 213), (20, 20, 250)),
        ],
    )
    assert GridMatcher().find_pairwise_match(frame) is None

@pytest.mark.parametrize("policy", [GridPolicy.PAIRWISE, GridPolicy.HAND_VS_BOARD])
@pytest.mark.parametrize("size", [(1, 1), (3, 5), (7, 300), (400, 800), (1080, 1920), (1001, 333)])
def test_cells_and_samples_stay_inside_frame(policy, size):
    width, height = size
    cfg = GridMatcherConfig.for_policy(policy.value)
    matcher = GridMatcher(cfg)
    for _, _, cx, cy in matcher.iter_cells(width, height):
        assert 0 <= cx < width
        assert 0 <= cy < height
        x0, y0, x1, y1 = sample_window(width, height, cx, cy, cfg.sample_size)
        assert 0 <= x0 < x1 <= width
        assert 0 <= y0 < y1 <= height

@pytest.mark.parametrize("size", [(1, 1), (2, 2), (5, 3)])
def test_tiny_frames_do_not_fail(make_frame, size):
    frame = make_frame(width=size[0], height=size[1], fill=(200, 200, 200))
    assert GridMatcher(GridMatcherConfig.pairwise()).find_visual_match(frame) is None
    GridMatcher(GridMatcherConfig.hand_vs_board()).find_visual_match(frame)

def test_for_policy_presets():
    cfg = GridMatcherConfig.for_policy("hand_vs_board")
    assert (cfg.rows, cfg.cols, cfg.similarity_threshold) == (12, 8, 30)
    cfg = GridMatcherConfig.for_policy("pairwise", rows=3)
    assert (cfg.rows, cfg.cols, cfg.similarity_threshold) == (3, 4, 25)
    with pytest.raises(ValueError):
        GridMatcherConfig.for_policy("nearest")
