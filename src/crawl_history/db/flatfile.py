"""
Flat File History Backend

Append-only pseudo-JSON files. Each flush appends one fragment per entry,
prefixed with a comma, and never rewrites earlier content:

    success file:  ,"<key>":true,"<key>":true
    failure file:  ,"<spider>":{"<key>":true},"<spider>":{"<key>":true}

On load the leading comma becomes "{" and a closing "}" is appended, giving a
single JSON object. Repeated spider members from successive flushes are merged.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from crawl_history.core.config import HistoryConfig
from crawl_history.db.base import HistoryBackend

logger = logging.getLogger(__name__)


def _merge_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    """object_pairs_hook merging duplicate object members instead of overwriting them."""
    merged: dict[str, Any] = {}
    for key, value in pairs:
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            current.update(value)
        else:
            merged[key] = value
    return merged


def parse_fragments(raw: bytes) -> dict[str, Any]:
    """
    Repair and parse the content of a history file.

    Tolerates a missing leading comma and a trailing comma before the
    synthesized closing brace.

    Raises:
        ValueError: if the repaired content is not a JSON object
    """
    text = raw.decode("utf-8").strip()
    if not text:
        return {}
    body = text.strip(",")
    data = json.loads("{" + body + "}", object_pairs_hook=_merge_pairs)
    if not isinstance(data, dict):
        raise ValueError("history file does not contain a JSON object")
    return data


def success_fragment(key: str) -> str:
    return "," + json.dumps(key, ensure_ascii=False) + ":true"


def failure_fragment(spider: str, keys: Iterable[str]) -> str:
    members = ",".join(json.dumps(k, ensure_ascii=False) + ":true" for k in keys)
    return "," + json.dumps(spider, ensure_ascii=False) + ":{" + members + "}"


class FileHistoryBackend(HistoryBackend):
    """History persisted to two append-only files under the cache directory."""

    name = "file"

    def __init__(self, config: HistoryConfig):
        super().__init__(config)
        self.success_path = Path(config.success_file)
        self.failure_path = Path(config.failure_file)
        self._dirs_ready = False

    def _ensure_dirs(self) -> None:
        if self._dirs_ready:
            return
        self.success_path.parent.mkdir(parents=True, exist_ok=True)
        self.failure_path.parent.mkdir(parents=True, exist_ok=True)
        self._dirs_ready = True

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            return parse_fragments(raw)
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            logger.error(f"Corrupt history file {path}: {e}")
            return {}

    def _append(self, path: Path, fragments: list[str]) -> None:
        self._ensure_dirs()
        with open(path, "a", encoding="utf-8") as f:
            f.write("".join(fragments))

    def load_success(self) -> set[str]:
        return {key for key, ok in self._read(self.success_path).items() if ok}

    def load_failure(self) -> dict[str, set[str]]:
        failures: dict[str, set[str]] = {}
        for spider, entries in self._read(self.failure_path).items():
            if not isinstance(entries, dict):
                continue
            failures[spider] = {key for key, ok in entries.items() if ok}
        return failures

    def persist_success(self, keys: Iterable[str]) -> int:
        fragments = [success_fragment(key) for key in keys]
        if not fragments:
            return 0
        self._append(self.success_path, fragments)
        return len(fragments)

    def persist_failure(self, delta: Mapping[str, Iterable[str]]) -> int:
        fragments = []
        count = 0
        for spider, keys in delta.items():
            keys = list(keys)
            if not keys:
                continue
            fragments.append(failure_fragment(spider, keys))
            count += len(keys)
        if not fragments:
            return 0
        self._append(self.failure_path, fragments)
        return count
