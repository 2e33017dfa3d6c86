"""Ordinal planning: compute renames as data before touching the disk.

Every function here is pure apart from generating unique temporary names.
The returned RenameStep lists are executed by RenameTransaction, so a plan
is fully validated (duplicate suffixes, boundaries, self-moves) before the
first rename happens.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from ..config import (
    DEFAULT_INSERT_DIR_SUFFIX,
    DEFAULT_INSERT_FILE_SUFFIX,
    ORDINAL_STEP,
    TEMP_NAME_PREFIX,
)
from ..errors import DuplicateSuffix, NotOrdinalItem
from ..models import OrdinalItem, RenameStep
from .scanner import find_duplicate_suffixes, ordinal_name, parse_ordinal

Direction = Literal["up", "down"]


def make_temp_name(purpose: str, extension: str = "") -> str:
    """Unique staging name outside the visible ordinal sequence."""
    return f"{TEMP_NAME_PREFIX}{purpose}_{int(time.time() * 1000)}_{secrets.token_hex(3)}{extension}"


def plan_renumber(items: list[OrdinalItem], directory: Path) -> list[RenameStep]:
    """Plan a renumber to 10, 20, 30, ... in current order.

    Items that already carry their target name are left out of the plan.

    Args:
        items: Items of one directory, as returned by scan_ordinal_items().
        directory: The directory the items live in.

    Raises:
        DuplicateSuffix: If two suffixes collide case-insensitively.
    """
    duplicates = find_duplicate_suffixes(items)
    if duplicates:
        raise DuplicateSuffix(directory, duplicates)

    steps = []
    for index, item in enumerate(items):
        new_name = ordinal_name(ORDINAL_STEP * (index + 1), item.suffix)
        if new_name == item.original_name:
            continue
        steps.append(RenameStep(source=item.full_path, destination=directory / new_name))
    return steps


def plan_insert_after(path: Path, directory: bool = False) -> tuple[Path, int]:
    """Name for a new item right after an existing ordinal item.

    The new ordinal is the selected item's raw ordinal plus one, so
    "00020_b.md" yields "00021_new.md". Nothing is renumbered; the gap
    between ordinals provides the headroom.

    Returns:
        (new_path, new_ordinal)

    Raises:
        NotOrdinalItem: If path has no ordinal prefix.
    """
    ordinal = parse_ordinal(path.name)
    if ordinal is None:
        raise NotOrdinalItem(path)

    next_ordinal = ordinal + 1
    suffix = DEFAULT_INSERT_DIR_SUFFIX if directory else DEFAULT_INSERT_FILE_SUFFIX
    return path.parent / ordinal_name(next_ordinal, suffix), next_ordinal


@dataclass
class MovePlan:
    """Renames that swap an item's ordinal with its neighbour's."""

    steps: list[RenameStep]
    selected: OrdinalItem
    neighbor: OrdinalItem
    selected_destination: Path
    neighbor_destination: Path


def plan_move_adjacent(items: list[OrdinalItem], selected_name: str, direction: Direction) -> MovePlan | None:
    """Plan swapping an item with its predecessor (up) or successor (down).

    Only the two ordinals change hands; suffixes stay with their items and
    every other item is untouched. The selected item is staged under a
    temporary name so the two renames can never collide.

    Returns:
        The plan, or None if the item is already first (up) or last (down).

    Raises:
        ValueError: If selected_name is not among items.
    """
    index = next((i for i, item in enumerate(items) if item.original_name == selected_name), None)
    if index is None:
        raise ValueError(f"Could not locate {selected_name} among the directory's ordinal items")

    neighbor_index = index - 1 if direction == "up" else index + 1
    if neighbor_index < 0 or neighbor_index >= len(items):
        return None

    selected = items[index]
    neighbor = items[neighbor_index]
    directory = selected.full_path.parent

    temp_path = directory / make_temp_name("swap")
    selected_destination = directory / ordinal_name(neighbor.ordinal, selected.suffix)
    neighbor_destination = directory / ordinal_name(selected.ordinal, neighbor.suffix)

    steps = [
        RenameStep(source=selected.full_path, destination=temp_path),
        RenameStep(source=neighbor.full_path, destination=neighbor_destination),
        RenameStep(source=temp_path, destination=selected_destination),
    ]
    return MovePlan(
        steps=steps,
        selected=selected,
        neighbor=neighbor,
        selected_destination=selected_destination,
        neighbor_destination=neighbor_destination,
    )


@dataclass
class RelocatePlan:
    """Renames that move an item into a neighbour's slot."""

    steps: list[RenameStep]
    final_path: Path
    ordinal: int
    shifted: list[OrdinalItem] = field(default_factory=list)


def _is_within(path: Path, ancestor: Path) -> bool:
    try:
        path.resolve().relative_to(ancestor.resolve())
    except ValueError:
        return False
    return True


def plan_relocate(
    source: Path,
    suffix: str,
    is_directory: bool,
    target: Path,
    destination_items: list[OrdinalItem],
) -> RelocatePlan | None:
    """Plan moving source into target's directory at target's ordinal.

    Items in the destination whose ordinal is >= the target ordinal shift
    up by ORDINAL_STEP, highest first, so no two items ever share a name.
    The moved item waits under a temporary name in the destination
    directory while the neighbours shift; its own parent may be one of them.

    Args:
        source: Item being moved (need not carry an ordinal itself).
        suffix: Name the moved item keeps after its new prefix.
        is_directory: Whether source is a folder.
        target: Ordinal item whose slot the moved item takes.
        destination_items: scan_ordinal_items(target.parent).

    Returns:
        The plan, or None if source already is the target.

    Raises:
        NotOrdinalItem: If target has no ordinal prefix.
        DuplicateSuffix: If the destination already holds another item
            with the same suffix.
        ValueError: If a folder would be moved into itself.
    """
    target_ordinal = parse_ordinal(target.name)
    if target_ordinal is None:
        raise NotOrdinalItem(target)

    if source == target:
        return None

    destination_dir = target.parent
    if is_directory and _is_within(destination_dir, source):
        raise ValueError(f"Cannot move folder {source.name} into itself")

    others = [item for item in destination_items if item.full_path != source]

    clashes = [item.original_name for item in others if item.suffix.lower() == suffix.lower()]
    if clashes:
        raise DuplicateSuffix(destination_dir, {suffix.lower(): clashes + [source.name]})

    extension = "" if is_directory else Path(suffix).suffix
    temp_path = destination_dir / make_temp_name("cut", extension)

    to_shift = sorted(
        (item for item in others if item.ordinal >= target_ordinal),
        key=lambda item: (item.ordinal, item.original_name),
        reverse=True,
    )

    steps = [RenameStep(source=source, destination=temp_path)]
    for item in to_shift:
        steps.append(
            RenameStep(
                source=item.full_path,
                destination=destination_dir / ordinal_name(item.ordinal + ORDINAL_STEP, item.suffix),
            )
        )

    final_path = destination_dir / ordinal_name(target_ordinal, suffix)
    steps.append(RenameStep(source=temp_path, destination=final_path))

    return RelocatePlan(steps=steps, final_path=final_path, ordinal=target_ordinal, shifted=to_shift)
