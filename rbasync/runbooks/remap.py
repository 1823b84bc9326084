from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List

from rbasync.errors import RemapError

from .schema import Runbook

logger = logging.getLogger(__name__)

FetchStandard = Callable[[str], Awaitable[Runbook]]


def build_id_map(exported: Runbook, standard: Runbook) -> Dict[str, str]:
    """
    Pair export-mode automation ids with live ids by step position.

    Both fetches must describe the same step list; anything else would pair
    the wrong automations, so it raises RemapError instead.
    """
    rid = exported.runbook_id
    if len(exported.steps) != len(standard.steps):
        raise RemapError(
            f"runbook {rid}: export mode has {len(exported.steps)} steps, "
            f"standard mode has {len(standard.steps)}"
        )

    id_map: Dict[str, str] = {}
    for ix, (ex_step, std_step) in enumerate(zip(exported.steps, standard.steps)):
        if ex_step.number != std_step.number:
            raise RemapError(
                f"runbook {rid}: step at position {ix} is number {ex_step.number} "
                f"in export mode but {std_step.number} in standard mode"
            )
        if not ex_step.automation_id:
            continue
        if not std_step.automation_id:
            raise RemapError(f"runbook {rid}: step {ex_step.number} has no automation in standard mode")
        previous = id_map.setdefault(ex_step.automation_id, std_step.automation_id)
        if previous != std_step.automation_id:
            raise RemapError(
                f"runbook {rid}: automation {ex_step.automation_id} maps to both "
                f"{previous} and {std_step.automation_id}"
            )
    return id_map


def _substitute(node: Any, id_map: Dict[str, str]) -> Any:
    # whole-token replacement in keys and string values, any depth
    if isinstance(node, dict):
        return {id_map.get(k, k) if isinstance(k, str) else k: _substitute(v, id_map) for k, v in node.items()}
    if isinstance(node, list):
        return [_substitute(v, id_map) for v in node]
    if isinstance(node, str):
        return id_map.get(node, node)
    return node


def apply_id_map(runbook: Runbook, id_map: Dict[str, str]) -> Runbook:
    """Return a copy of runbook with placeholder ids replaced in steps and automations."""
    if not id_map:
        return runbook
    payload = runbook.to_payload()
    payload["steps"] = _substitute(payload.get("steps", []), id_map)
    payload["automations"] = _substitute(payload.get("automations", {}), id_map)
    return Runbook.model_validate(payload)


async def remap_automation_ids(exported: List[Runbook], fetch_standard: FetchStandard) -> List[Runbook]:
    """
    Swap export-mode automation ids for the live ids the service resolves on import.

    Runbooks without automations are returned as they are. Standard-mode fetches
    run concurrently and any failure aborts the whole remap.
    """
    async def remap_one(rb: Runbook) -> Runbook:
        if not rb.automations:
            return rb
        standard = await fetch_standard(rb.runbook_id)
        id_map = build_id_map(rb, standard)
        for placeholder, live in id_map.items():
            logger.debug(f"Runbook {rb.runbook_id}: automation {placeholder} -> {live}")
        return apply_id_map(rb, id_map)

    return list(await asyncio.gather(*(remap_one(rb) for rb in exported)))
