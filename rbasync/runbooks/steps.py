from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup

from rbasync.errors import LocalStoreError

from .schema import Runbook, Step

logger = logging.getLogger(__name__)

STEP_DIR_SUFFIX = "_steps"
MAX_STEP_NUMBER = 999

_STEP_FILE_RE = re.compile(r"^step(\d{3})\.html$")


def step_file_name(number: int) -> str:
    if not 1 <= number <= MAX_STEP_NUMBER:
        raise ValueError(f"step number {number} outside 1..{MAX_STEP_NUMBER}")
    return f"step{number:03d}.html"


def step_number_from_file(filename: str) -> Optional[int]:
    m = _STEP_FILE_RE.match(filename)
    return int(m.group(1)) if m else None


def step_dir_for(json_path: Path) -> Path:
    """`foo.json` -> `foo_steps` next to it."""
    return json_path.with_name(json_path.stem + STEP_DIR_SUFFIX)


def export_marker(filename: str) -> str:
    return f"Exported into {filename}"


def pretty_html(fragment: str) -> str:
    return BeautifulSoup(fragment, "html.parser").prettify()


def _write(path: Path, text: str) -> None:
    try:
        path.write_text(text, "utf-8")
    except OSError as e:
        raise LocalStoreError(str(path), f"write failed: {e}") from e


def _read(path: Path) -> str:
    try:
        return path.read_text("utf-8")
    except OSError as e:
        raise LocalStoreError(str(path), f"read failed: {e}") from e


def _reset_dir(steps_dir: Path) -> None:
    try:
        shutil.rmtree(steps_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise LocalStoreError(str(steps_dir), f"cannot remove stale step files: {e}") from e


async def split_step_files(runbook: Runbook, steps_dir: Path) -> List[Path]:
    """
    Move non-empty step descriptions into `stepNNN.html` files under steps_dir.

    The directory is wiped first and only recreated when at least one step
    has a description. Each exported step keeps a short marker in place of
    its description.
    """
    described: List[Step] = [s for s in runbook.steps if s.description]
    try:
        names = {s.number: step_file_name(s.number) for s in described}
    except ValueError as e:
        raise LocalStoreError(str(steps_dir), str(e)) from e

    await asyncio.to_thread(_reset_dir, steps_dir)
    if not described:
        return []

    try:
        await asyncio.to_thread(steps_dir.mkdir, parents=True, exist_ok=True)
    except OSError as e:
        raise LocalStoreError(str(steps_dir), f"mkdir failed: {e}") from e

    async def write_one(step: Step) -> Path:
        name = names[step.number]
        html = pretty_html(step.description or "")
        step.description = export_marker(name)
        logger.info(f"Writing {name} for runbook {runbook.runbook_id}.")
        path = steps_dir / name
        await asyncio.to_thread(_write, path, html)
        return path

    return list(await asyncio.gather(*(write_one(s) for s in described)))


async def merge_step_files(runbook: Runbook, steps_dir: Path) -> int:
    """
    Put the raw contents of `stepNNN.html` files back into the matching steps.

    A missing directory is not an error. Files for step numbers the runbook
    does not have are ignored. Returns the number of steps updated.
    """
    if not steps_dir.is_dir():
        return 0

    by_number = runbook.step_by_number()
    targets = []
    for entry in sorted(steps_dir.iterdir()):
        number = step_number_from_file(entry.name)
        if number is None or number not in by_number:
            continue
        targets.append((by_number[number], entry))

    contents = await asyncio.gather(*(asyncio.to_thread(_read, path) for _, path in targets))
    for (step, _path), text in zip(targets, contents):
        step.description = text
    return len(targets)
