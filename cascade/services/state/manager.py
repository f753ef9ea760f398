"""Durable run state, one directory per module version.

Layout under the state root::

    <root>/<module>/<version>/summary.json
    <root>/<module>/<version>/items/<sha256(repo)>.json

Every write goes through ``atomic_write_json`` so a crash leaves either the
previous record or the new one on disk, never a torn file.
"""

from __future__ import annotations

import hashlib
import json
import shutil
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote

from cascade.core.result import Err, Ok, Result
from cascade.platform.files import atomic_write_json
from cascade.services.executor.model import can_transition
from cascade.services.state.model import ItemState, StateError, Summary

__all__ = ["StateManager", "parse_state_id"]

SUMMARY_FILENAME = "summary.json"
ITEMS_DIRNAME = "items"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_state_id(value: str) -> tuple[str, str] | None:
    """Split ``module@version``; the version is after the last ``@``."""
    module, sep, version = value.strip().rpartition("@")
    if not sep or not module or not version:
        return None
    return module, version


def _item_filename(repo: str) -> str:
    return hashlib.sha256(repo.encode("utf-8")).hexdigest() + ".json"


class StateManager:
    def __init__(self, *, root: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        self._root = root
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def run_dir(self, module: str, version: str) -> Path:
        return self._root / quote(module, safe="") / quote(version, safe="")

    def summary_path(self, module: str, version: str) -> Path:
        return self.run_dir(module, version) / SUMMARY_FILENAME

    def item_path(self, module: str, version: str, repo: str) -> Path:
        return self.run_dir(module, version) / ITEMS_DIRNAME / _item_filename(repo)

    def now(self) -> datetime:
        return self._clock()

    # -- summary ----------------------------------------------------------

    def load_summary(self, module: str, version: str) -> Result[Summary, StateError]:
        invalid = _validate_key(module, version)
        if invalid is not None:
            return Err(invalid)

        path = self.summary_path(module, version)
        raw = _read_json(path, what="summary")
        if isinstance(raw, Err):
            return raw
        if raw.value is None:
            return Err(
                StateError(
                    kind="not_found",
                    message=f"no state for {module}@{version}",
                    hint=str(path),
                )
            )

        summary = Summary.from_dict(raw.value)
        if summary is None:
            return Err(StateError(kind="corrupt", message="summary file has an invalid shape", hint=str(path)))
        return Ok(summary)

    def save_summary(self, summary: Summary) -> Result[Summary, StateError]:
        """Persist the summary. Repos already recorded are never dropped."""
        invalid = _validate_key(summary.module, summary.version)
        if invalid is not None:
            return Err(invalid)

        merged = summary
        existing = self.load_summary(summary.module, summary.version)
        match existing:
            case Ok(previous):
                items = list(previous.items)
                items.extend(repo for repo in summary.items if repo not in previous.items)
                merged = replace(summary, items=tuple(items))
            case Err(error) if error.kind != "not_found":
                return Err(error)
            case _:
                pass

        path = self.summary_path(summary.module, summary.version)
        written = _write_json(path, merged.to_dict())
        if isinstance(written, Err):
            return written
        return Ok(merged)

    def discard(self, module: str, version: str) -> Result[None, StateError]:
        """Remove the summary and every item record of one module version."""
        invalid = _validate_key(module, version)
        if invalid is not None:
            return Err(invalid)

        path = self.run_dir(module, version)
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            return Err(StateError(kind="io", message=f"failed to discard state: {e}", hint=str(path)))
        return Ok(None)

    # -- items ------------------------------------------------------------

    def load_item_state(self, module: str, version: str, repo: str) -> Result[ItemState | None, StateError]:
        """Item record for ``repo``; Ok(None) when nothing was recorded yet."""
        invalid = _validate_key(module, version)
        if invalid is not None:
            return Err(invalid)

        path = self.item_path(module, version, repo)
        raw = _read_json(path, what="item state")
        if isinstance(raw, Err):
            return raw
        if raw.value is None:
            return Ok(None)

        state = ItemState.from_dict(raw.value)
        if state is None or state.repo != repo:
            return Err(StateError(kind="corrupt", message=f"item state for {repo} has an invalid shape", hint=str(path)))
        return Ok(state)

    def save_item_state(
        self,
        module: str,
        version: str,
        state: ItemState,
        *,
        force: bool = False,
    ) -> Result[ItemState, StateError]:
        """Persist one item record.

        Status may only move forward (see ``can_transition``). ``force`` is
        for resume, which deliberately resets failed items to pending.
        """
        invalid = _validate_key(module, version)
        if invalid is not None:
            return Err(invalid)
        if not state.repo:
            return Err(StateError(kind="invalid", message="item state needs a repo"))

        if not force:
            current = self.load_item_state(module, version, state.repo)
            if isinstance(current, Err):
                return current
            previous = current.value
            if previous is not None and not can_transition(previous.status, state.status):
                return Err(
                    StateError(
                        kind="invalid",
                        message=f"{state.repo}: cannot move from {previous.status} to {state.status}",
                    )
                )

        path = self.item_path(module, version, state.repo)
        written = _write_json(path, state.to_dict())
        if isinstance(written, Err):
            return written
        return Ok(state)

    def load_item_states(self, module: str, version: str) -> Result[list[ItemState], StateError]:
        """Item records in summary order; repos without a record are left out."""
        summary = self.load_summary(module, version)
        if isinstance(summary, Err):
            return summary

        states: list[ItemState] = []
        for repo in summary.value.items:
            loaded = self.load_item_state(module, version, repo)
            if isinstance(loaded, Err):
                return loaded
            if loaded.value is not None:
                states.append(loaded.value)
        return Ok(states)


def _validate_key(module: str, version: str) -> StateError | None:
    if not module.strip() or not version.strip():
        return StateError(kind="invalid", message="state key needs a module and a version")
    return None


def _read_json(path: Path, *, what: str) -> Result[object | None, StateError]:
    """Parsed JSON at ``path``; Ok(None) when the file does not exist."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Ok(None)
    except OSError as e:
        return Err(StateError(kind="io", message=f"failed to read {what}: {e}", hint=str(path)))

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(StateError(kind="corrupt", message=f"invalid JSON in {what}: {e}", hint=str(path)))
    return Ok(obj)


def _write_json(path: Path, payload: dict[str, object]) -> Result[None, StateError]:
    try:
        atomic_write_json(path, payload)
    except OSError as e:
        return Err(StateError(kind="io", message=f"failed to write state: {e}", hint=str(path)))
    return Ok(None)
