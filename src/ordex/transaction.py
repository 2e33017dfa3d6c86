"""Filesystem rename transactions with best-effort rollback.

The filesystem is the only persistence layer, so multi-step operations keep
an in-memory undo log of completed renames. If any rename fails, completed
renames are replayed backwards before the error propagates.

Renames run one at a time and synchronously. Nothing in here awaits, so an
asyncio cancellation can only land between transactions, never inside one.

Usage:
    steps = plan_renumber(items)
    RenameTransaction().execute(steps)

    # or step by step, rolling back if the block raises
    with RenameTransaction() as txn:
        txn.rename(a, tmp)
        txn.rename(b, a)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from .errors import RenameFailed, RollbackIncomplete
from .models import RenameStep

log = logging.getLogger(__name__)


def _is_same_entry(source: Path, destination: Path) -> bool:
    """True if destination is source under another spelling (case-only rename)."""
    try:
        return os.path.samefile(source, destination)
    except OSError:
        return False


class RenameTransaction:
    """An undo log scoped to one logical operation."""

    def __init__(self, label: str = "rename") -> None:
        self.label = label
        self._completed: list[RenameStep] = []

    @property
    def completed(self) -> list[RenameStep]:
        """Renames performed so far, in forward order."""
        return list(self._completed)

    def rename(self, source: Path, destination: Path) -> RenameStep:
        """Perform one rename and log it.

        Refuses to replace an existing entry at destination; two logical
        items must never end up sharing one name.

        Raises:
            RenameFailed: If the rename could not be performed. Nothing is
                rolled back here; execute() and the context manager do that.
        """
        step = RenameStep(source=source, destination=destination)

        if source == destination:
            return step

        if os.path.lexists(destination) and not _is_same_entry(source, destination):
            raise RenameFailed(source, destination, "destination already exists")

        try:
            os.rename(source, destination)
        except OSError as e:
            raise RenameFailed(source, destination, e.strerror or str(e)) from e

        self._completed.append(step)
        log.debug("[%s] renamed %s -> %s", self.label, source, destination)
        return step

    def execute(self, steps: Iterable[RenameStep]) -> list[RenameStep]:
        """Apply planned steps in order, rolling back on the first failure.

        Returns:
            The completed steps (skipping no-op steps).

        Raises:
            RenameFailed: A step failed and every completed step was undone.
            RollbackIncomplete: A step failed and some undo steps failed too.
        """
        try:
            for step in steps:
                self.rename(step.source, step.destination)
        except RenameFailed as e:
            self._rollback_and_raise(e)
        return self.completed

    def rollback(self) -> list[tuple[Path, Path]]:
        """Undo completed renames in reverse order.

        A failing undo step is logged and skipped so the remaining steps
        still get their chance.

        Returns:
            (current_path, original_path) pairs that could not be restored.
        """
        unrestored: list[tuple[Path, Path]] = []
        while self._completed:
            step = self._completed.pop()
            try:
                if os.path.lexists(step.source) and not _is_same_entry(step.destination, step.source):
                    raise FileExistsError(f"{step.source} was recreated")
                os.rename(step.destination, step.source)
                log.debug("[%s] restored %s -> %s", self.label, step.destination, step.source)
            except OSError as e:
                log.error(
                    "[%s] failed to restore %s -> %s: %s",
                    self.label,
                    step.destination,
                    step.source,
                    e,
                )
                unrestored.append((step.destination, step.source))
        return unrestored

    def _rollback_and_raise(self, error: RenameFailed) -> None:
        undone = len(self._completed)
        unrestored = self.rollback()
        if unrestored:
            raise RollbackIncomplete(error, unrestored) from (error.__cause__ or error)
        if undone:
            log.warning("[%s] rolled back %d rename(s) after failure: %s", self.label, undone, error.message)
        raise error

    def __enter__(self) -> RenameTransaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            return False

        if isinstance(exc, RenameFailed):
            self._rollback_and_raise(exc)

        unrestored = self.rollback()
        if unrestored:
            log.error("[%s] rollback incomplete after %r: %d rename(s) left in place", self.label, exc, len(unrestored))
        return False
