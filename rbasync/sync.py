from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from rbasync.rba.client import RbaClient
from rbasync.runbooks.reconcile import PatchOutcome, SyncPlan, apply_patches, index_by_id, plan_import
from rbasync.runbooks.remap import remap_automation_ids
from rbasync.runbooks.schema import Runbook
from rbasync.runbooks.store import RunbookStore, sanitize_filename

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    written: List[Path] = field(default_factory=list)


@dataclass
class ImportResult:
    plan: SyncPlan
    create_response: Any = None
    patches: PatchOutcome = field(default_factory=PatchOutcome)


def assign_filenames(store: RunbookStore, runbooks: List[Runbook], known: Dict[str, str]) -> Dict[str, str]:
    """
    Pick one file per runbook id.

    Files a previous export wrote keep their owner, whatever order the server
    lists runbooks in. A name derived from a runbook name that is already
    taken gets the runbook id appended.
    """
    taken: Dict[str, str] = {filename: rid for rid, filename in known.items()}
    out: Dict[str, str] = {}
    for rb in runbooks:
        if rb.runbook_id in known:
            out[rb.runbook_id] = known[rb.runbook_id]

    for rb in runbooks:
        if rb.runbook_id in out:
            continue
        name = store.filename_for(rb, {})
        if name in taken:
            name = f"{name[:-len('.json')]}_{sanitize_filename(rb.runbook_id)}.json"
        taken[name] = rb.runbook_id
        out[rb.runbook_id] = name
    return out


async def export_runbooks(client: RbaClient, path: Path, split_html: bool) -> ExportResult:
    """
    Write every runbook on the server into `path`.

    Files from a previous export keep their names. Export-mode automation ids
    are swapped for live ones so the files can be imported again.
    """
    store = RunbookStore(path)
    files, runbooks = await asyncio.gather(
        store.load_all(merge_steps=False),
        client.list_runbooks(export_format=True),
    )
    runbooks = await remap_automation_ids(runbooks, client.get_runbook)

    known = {f.runbook.runbook_id: f.filename for f in files}
    names = assign_filenames(store, runbooks, known)
    written = await asyncio.gather(
        *(store.save(rb, names[rb.runbook_id], split_html) for rb in runbooks)
    )
    return ExportResult(written=list(written))


async def import_runbooks(client: RbaClient, path: Path, publish: bool) -> ImportResult:
    """
    Create runbooks the server does not have and patch the ones that differ.

    Nothing is ever deleted on the server. A failed patch is reported in the
    result; a failed fetch or create raises.
    """
    store = RunbookStore(path)
    remote, files = await asyncio.gather(
        client.list_runbooks(export_format=False),
        store.load_all(merge_steps=True),
    )
    plan = plan_import(index_by_id(remote), [f.runbook for f in files])
    logger.info(f"Import plan: {plan.summary()}")

    result = ImportResult(plan=plan)
    if plan.to_create:
        result.create_response = await client.create_runbooks(plan.to_create, publish=publish, verbose=True)
        logger.info(f"Create response: {result.create_response}")

    result.patches = await apply_patches(plan.to_patch, lambda rb: client.patch_runbook(rb, publish=publish))
    logger.info(f"{len(result.patches.patched)} runbook(s) patched")
    if result.patches.failed:
        logger.warning(f"{len(result.patches.failed)} runbook patch(es) failed")
    return result
