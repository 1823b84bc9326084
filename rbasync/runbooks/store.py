from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from rbasync.errors import LocalStoreError

from .schema import Runbook
from .steps import merge_step_files, split_step_files, step_dir_for

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s")
# reserved on at least one common filesystem, plus control characters
_UNSAFE_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
MAX_NAME_LENGTH = 100


def sanitize_filename(name: str) -> str:
    cleaned = _UNSAFE_RE.sub("", _WHITESPACE_RE.sub("_", name)).strip(".")
    return cleaned[:MAX_NAME_LENGTH]


@dataclass
class RunbookFile:
    filename: str
    runbook: Runbook


class RunbookStore:
    """One `<name>.json` per runbook in `root`, optionally with a `<name>_steps/` directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def list(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.glob("*.json") if p.is_file())

    def filename_for(self, runbook: Runbook, known: Dict[str, str]) -> str:
        """Reuse the file a previous export wrote for this id, otherwise derive one from the name."""
        existing = known.get(runbook.runbook_id)
        if existing:
            return existing
        base = sanitize_filename(runbook.name) or sanitize_filename(runbook.runbook_id)
        return f"{base}.json"

    def _read(self, filename: str) -> Runbook:
        path = self.root / filename
        try:
            data = json.loads(path.read_text("utf-8"))
            return Runbook.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            raise LocalStoreError(str(path), f"read failed: {e}") from e

    async def load(self, filename: str, merge_steps: bool) -> RunbookFile:
        runbook = await asyncio.to_thread(self._read, filename)
        if merge_steps:
            merged = await merge_step_files(runbook, step_dir_for(self.root / filename))
            if merged:
                logger.debug(f"Merged {merged} step file(s) into {filename}")
        return RunbookFile(filename=filename, runbook=runbook)

    async def load_all(self, merge_steps: bool) -> List[RunbookFile]:
        """Read every runbook file concurrently; the first failure aborts the batch."""
        return list(await asyncio.gather(*(self.load(f, merge_steps) for f in self.list())))

    def _write(self, filename: str, runbook: Runbook) -> Path:
        path = self.root / filename
        try:
            path.write_text(json.dumps(runbook.to_payload(), indent=2, ensure_ascii=False), "utf-8")
        except OSError as e:
            logger.error(f"Failed to write file {filename} due to {e}")
            raise LocalStoreError(str(path), f"write failed: {e}") from e
        return path

    async def save(self, runbook: Runbook, filename: str, split_html: bool) -> Path:
        if split_html:
            await split_step_files(runbook, step_dir_for(self.root / filename))
        logger.info(f"Writing {filename} with runbook id {runbook.runbook_id}.")
        return await asyncio.to_thread(self._write, filename, runbook)
