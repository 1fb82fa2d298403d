# reasoner/reasoner.py
import asyncio
import re
import time
from collections import deque
from typing import Iterable, List, Optional, Sequence

from reasoner import config
from reasoner.backend import CompletionBackend
from runner import metrics
from runner.actions import ClickAction
from runner.errors import ReasonerResponseError, ReasonerUnavailableError
from runner.logger import log
from runner.perception.menu_heuristic import MenuHeuristic
from runner.perception.ui_element import UIElement

REASONER_CONFIDENCE = 0.8

class Reasoner:
    """
    Optional decision source that asks a text-completion backend which
    on-screen button to tap next.

    The reasoner never raises to its caller. Any backend failure (not ready,
    timeout, exception, unusable reply) is logged, counted, and answered with
    what the menu heuristic would have chosen for the same elements.
    """

    def __init__(
        self,
        backend: CompletionBackend,
        menu_heuristic: Optional[MenuHeuristic] = None,
        max_elements: int = config.REASONER_MAX_ELEMENTS,
        history_size: int = config.REASONER_HISTORY_SIZE,
        timeout_sec: float = config.REASONER_TIMEOUT_SEC,
    ):
        self.backend = backend
        self.menu_heuristic = menu_heuristic or MenuHeuristic()
        self.max_elements = max_elements
        self.timeout_sec = timeout_sec
        self.history_size = history_size
        self.history = deque(maxlen=history_size)

    @property
    def is_ready(self) -> bool:
        return bool(self.backend.is_ready)

    def candidates(self, elements: Iterable[UIElement]) -> List[UIElement]:
        picked = [el for el in elements if el.is_clickable and el.text.strip()]
        return picked[: self.max_elements]

    def build_prompt(self, candidates: Sequence[UIElement], history: Sequence[str]) -> str:
        recent = list(history)[-self.history_size:] if self.history_size else []
        lines = [
            "You are playing a mobile game. Pick the one button to tap next.",
            "Dismiss pop-ups, collect rewards and start the next level when you can.",
            "",
            "Recent taps: " + (", ".join(recent) if recent else "none"),
            "",
            "Buttons on screen:",
        ]
        lines.extend(f"- {el.text.strip()}" for el in candidates)
        lines.append("")
        lines.append(
            f"Reply with the exact text of one button, or {config.NO_ACTION_TOKEN} if nothing should be tapped."
        )
        return "\n".join(lines)

    @staticmethod
    def parse_reply(raw: str) -> str:
        for line in (raw or "").splitlines():
            cleaned = line.strip().strip("\"'`*.").strip()
            if cleaned:
                return cleaned
        raise ReasonerResponseError("Empty completion")

    @staticmethod
    def match_element(reply: str, candidates: Sequence[UIElement]) -> Optional[UIElement]:
        needle = reply.lower()
        texts = [el.text.strip().lower() for el in candidates]
        # reply quoted from a label first, then a label embedded in a wordier reply
        for el, text in zip(candidates, texts):
            if needle in text:
                return el
        embedded = [
            (el, text) for el, text in zip(candidates, texts)
            if re.search(r"(?<!\w)" + re.escape(text) + r"(?!\w)", needle)
        ]
        if not embedded:
            return None
        # longest label wins so a short "X" never shadows "Next level"
        return max(embedded, key=lambda pair: len(pair[1]))[0]

    def _fallback(self, elements: List[UIElement], reason: str, error: Optional[Exception] = None):
        metrics.REASONER_FALLBACKS.labels(reason=reason).inc()
        log("WARN", "reasoner_fallback", "Reasoning failed, using menu heuristic",
            reason=reason, error=str(error) if error else None)
        return self.menu_heuristic.find_menu_action(elements)

    async def suggest_action(self, elements: List[UIElement], history: Optional[Sequence[str]] = None) -> Optional[ClickAction]:
        candidates = self.candidates(elements)
        prompt = self.build_prompt(candidates, self.history if history is None else history)
        start = time.time()

        try:
            if not self.is_ready:
                raise ReasonerUnavailableError("Reasoning backend not ready")
            raw = await asyncio.wait_for(self.backend.complete_text(prompt), timeout=self.timeout_sec)
            reply = self.parse_reply(raw)
        except asyncio.TimeoutError as e:
            return self._fallback(elements, "timeout", e)
        except ReasonerUnavailableError as e:
            return self._fallback(elements, "not_ready", e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return self._fallback(elements, "backend_error", e)

        duration_ms = int((time.time() - start) * 1000)
        if reply.upper() == config.NO_ACTION_TOKEN:
            log("INFO", "reasoner_no_action", "Reasoner chose no action", duration_ms=duration_ms)
            return None

        target = self.match_element(reply, candidates)
        if target is None:
            return self._fallback(elements, "unmatched_reply", ReasonerResponseError(f"No element matches '{reply}'"))

        label = target.text.strip()
        self.history.append(label)
        log("INFO", "reasoner_action", "Reasoner picked element", reply=reply, text=label, duration_ms=duration_ms)
        return ClickAction(
            x=float(target.bounds.center_x),
            y=float(target.bounds.center_y),
            label=f"AI: {label}",
            confidence=REASONER_CONFIDENCE,
            origin_sequence_id="llm_reasoning",
        )
