import time
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from runner.actions import ClickAction
from runner.logger import log
from runner.perception.color import GridCell, are_similar, average_color

class GridPolicy(str, Enum):
    PAIRWISE = "pairwise"
    HAND_VS_BOARD = "hand_vs_board"

class GridMatcherConfig(BaseModel):
    """
    Geometry and thresholds for the grid scan. Vertical positions are
    fractions of the frame height, hand_x is a fraction of the width.
    """
    model_config = ConfigDict(extra='ignore')

    policy: GridPolicy = GridPolicy.PAIRWISE
    rows: int = Field(6, ge=1)
    cols: int = Field(4, ge=1)
    band_top: float = Field(0.15, ge=0.0, le=1.0)
    band_bottom: float = Field(0.85, ge=0.0, le=1.0)
    sample_size: int = Field(20, ge=0)
    darkness_threshold: float = Field(0.2, ge=0.0, le=1.0)
    similarity_threshold: float = Field(25, gt=0)
    confidence: float = Field(0.95, ge=0.0, le=1.0)

    # hand_vs_board only
    hand_x: float = Field(0.5, ge=0.0, le=1.0)
    hand_y: float = Field(0.88, ge=0.0, le=1.0)
    hand_sample_size: int = Field(30, ge=0)

    @classmethod
    def pairwise(cls, **overrides) -> "GridMatcherConfig":
        return cls(**overrides)

    @classmethod
    def hand_vs_board(cls, **overrides) -> "GridMatcherConfig":
        values = dict(
            policy=GridPolicy.HAND_VS_BOARD,
            rows=12,
            cols=8,
            band_top=0.15,
            band_bottom=0.75,
            similarity_threshold=30,
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def for_policy(cls, policy: str, **overrides) -> "GridMatcherConfig":
        if GridPolicy(policy) == GridPolicy.HAND_VS_BOARD:
            return cls.hand_vs_board(**overrides)
        return cls.pairwise(**overrides)

class GridMatcher:
    """
    Finds a tile to tap by comparing averaged cell colours on a fixed grid.

    Both policies stop at the first hit in row-major order instead of looking
    for the closest match, which keeps a scan bounded to one pass.
    """

    def __init__(self, config: Optional[GridMatcherConfig] = None):
        self.config = config or GridMatcherConfig.pairwise()

    def find_visual_match(self, frame) -> Optional[ClickAction]:
        if self.config.policy == GridPolicy.HAND_VS_BOARD:
            return self.find_domino_match(frame)
        return self.find_pairwise_match(frame)

    def iter_cells(self, width: int, height: int) -> Iterator[Tuple[int, int, int, int]]:
        """Yields (row, col, center_x, center_y) for every cell that lies inside the frame."""
        cfg = self.config
        top = int(height * cfg.band_top)
        bottom = int(height * cfg.band_bottom)
        cell_w = width // cfg.cols
        cell_h = (bottom - top) // cfg.rows
        if cell_w <= 0 or cell_h <= 0:
            log("DEBUG", "grid_degenerate", "Grid cells have no area, skipping scan",
                width=width, height=height, cell_w=cell_w, cell_h=cell_h)
            return

        for r in range(cfg.rows):
            for c in range(cfg.cols):
                x = c * cell_w
                y = top + r * cell_h
                if x + cell_w > width or y + cell_h > height:
                    continue
                yield r, c, x + cell_w // 2, y + cell_h // 2

    def scan_cells(self, frame) -> List[GridCell]:
        """Samples every cell and drops the ones that are empty or too dark."""
        cells = []
        for r, c, cx, cy in self.iter_cells(frame.width, frame.height):
            signature = average_color(frame, cx, cy, self.config.sample_size)
            if signature is None:
                continue
            if signature.brightness < self.config.darkness_threshold:
                continue
            cells.append(GridCell(row=r, col=c, center_x=float(cx), center_y=float(cy), signature=signature))
        return cells

    def find_pairwise_match(self, frame) -> Optional[ClickAction]:
        start = time.time()
        cells = self.scan_cells(frame)
        threshold = self.config.similarity_threshold

        for i in range(len(cells)):
            for j in range(i + 1, len(cells)):
                a, b = cells[i], cells[j]
                if are_similar(a.signature, b.signature, threshold):
                    log("DEBUG", "grid_pair_found", "Matching tile pair found",
                        first=(a.row, a.col), second=(b.row, b.col),
                        duration_ms=int((time.time() - start) * 1000))
                    return ClickAction(
                        x=a.center_x,
                        y=a.center_y,
                        label=f"Match Found: ({a.row},{a.col}) ~ ({b.row},{b.col})",
                        confidence=self.config.confidence,
                        origin_sequence_id="tile_match",
                    )
        return None

    def find_domino_match(self, frame) -> Optional[ClickAction]:
        cfg = self.config
        hand_x = int(frame.width * cfg.hand_x)
        hand_y = int(frame.height * cfg.hand_y)
        hand = average_color(frame, hand_x, hand_y, cfg.hand_sample_size)
        if hand is None or hand.brightness < cfg.darkness_threshold:
            log("DEBUG", "grid_hand_empty", "Hand is empty or dark, nothing to play")
            return None

        for r, c, cx, cy in self.iter_cells(frame.width, frame.height):
            board = average_color(frame, cx, cy, cfg.sample_size)
            if board is None:
                continue
            if are_similar(hand, board, cfg.similarity_threshold):
                log("DEBUG", "grid_domino_found", "Board tile matches hand", row=r, col=c, x=cx, y=cy)
                return ClickAction(
                    x=float(cx),
                    y=float(cy),
                    label=f"Found Match! ({r},{c})",
                    confidence=cfg.confidence,
                    origin_sequence_id="domino_match",
                )
        return None
