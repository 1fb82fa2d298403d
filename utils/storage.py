"""
Local persistence for actions recorded in learning mode.

Recorded actions are appended to a JSON-lines log; a small statistics file
(per kind/label counts and last-seen time) stands in for the model update.
File work runs in a worker thread so the event loop is never blocked.
"""
import asyncio
import json
import os
import threading
import time
from typing import List, Optional

from runner import paths
from runner.actions import action_list_adapter, parse_action
from runner.logger import log
from utils.retry import async_retry

class ActionStore:
    """
    Stores learned action sequences under a data directory.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = paths.make_data_dir(root)
        self.actions_path = paths.actions_log_path(self.root)
        self.stats_path = paths.model_stats_path(self.root)
        self._lock = threading.Lock()
        log("INFO", "storage_init", "Using local storage for learned actions", root=self.root)

    # --------------------------
    # Sync file operations
    # --------------------------
    def _append_actions(self, actions: list) -> int:
        # the whole batch validates before anything is written
        records = action_list_adapter.dump_python(action_list_adapter.validate_python(actions), mode="json")
        lines = [json.dumps(r, separators=(",", ":")) for r in records]
        with self._lock:
            with open(self.actions_path, "a", encoding="utf-8") as fh:
                for line in lines:
                    fh.write(line + "\n")
        return len(lines)

    def _fold_stats(self, actions: list) -> dict:
        with self._lock:
            stats = self._read_stats()
            entries = stats.setdefault("entries", {})
            for a in actions:
                key = f"{a.kind}:{a.label}"
                entry = entries.setdefault(key, {"kind": a.kind, "label": a.label, "count": 0})
                entry["count"] += 1
                entry["last_seen"] = a.timestamp
            stats["updated_at"] = time.time()
            stats["total"] = sum(e["count"] for e in entries.values())

            tmp_path = self.stats_path + ".tmp"
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(stats, fh, indent=2)
            os.replace(tmp_path, self.stats_path)
        return stats

    def _read_stats(self) -> dict:
        if not os.path.exists(self.stats_path):
            return {}
        with open(self.stats_path, "r", encoding="utf-8") as fh:
            return json.load(fh)

    def load_actions(self) -> List:
        """Reads every stored action back, skipping lines that no longer parse."""
        if not os.path.exists(self.actions_path):
            return []
        actions = []
        with open(self.actions_path, "r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    actions.append(parse_action(line))
                except ValueError as e:
                    log("WARN", "storage_bad_line", "Skipping unreadable action record", line=lineno, error=str(e))
        return actions

    def load_stats(self) -> dict:
        with self._lock:
            return self._read_stats()

    # --------------------------
    # Async API
    # --------------------------
    @async_retry(retries=2, delay=0.2, exceptions=(OSError,))
    async def persist_actions(self, actions: list) -> int:
        if not actions:
            return 0
        count = await asyncio.to_thread(self._append_actions, list(actions))
        log("INFO", "storage_actions_saved", "Saved learned actions", count=count, path=self.actions_path)
        return count

    @async_retry(retries=2, delay=0.2, exceptions=(OSError,))
    async def persist_model_update(self, actions: list) -> dict:
        stats = await asyncio.to_thread(self._fold_stats, list(actions))
        log("INFO", "storage_model_updated", "Updated action statistics", total=stats.get("total", 0))
        return stats
