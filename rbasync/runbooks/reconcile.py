from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from rbasync.errors import RemoteServiceError

from .schema import Runbook, runbooks_equal

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    to_create: List[Runbook] = field(default_factory=list)
    to_patch: List[Runbook] = field(default_factory=list)
    unchanged: List[Runbook] = field(default_factory=list)
    remote_only: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.to_create)} to create, {len(self.to_patch)} to patch, "
            f"{len(self.unchanged)} unchanged, {len(self.remote_only)} only on server"
        )


@dataclass
class PatchOutcome:
    patched: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def index_by_id(runbooks: Iterable[Runbook]) -> Dict[str, Runbook]:
    return {rb.runbook_id: rb for rb in runbooks}


def plan_import(remote: Dict[str, Runbook], local: List[Runbook]) -> SyncPlan:
    """
    Decide per local runbook whether to create, patch or leave it alone.

    Runbooks that exist only on the server end up in `remote_only` and are
    never touched.
    """
    plan = SyncPlan()
    local_ids = set()
    for rb in local:
        local_ids.add(rb.runbook_id)
        current = remote.get(rb.runbook_id)
        if current is None:
            plan.to_create.append(rb)
        elif runbooks_equal(rb, current):
            plan.unchanged.append(rb)
        else:
            plan.to_patch.append(rb)
    plan.remote_only = sorted(rid for rid in remote if rid not in local_ids)
    return plan


async def apply_patches(
    runbooks: List[Runbook],
    patch: Callable[[Runbook], Awaitable[object]],
) -> PatchOutcome:
    """Run all patches concurrently. A failed patch is logged and counted, it never stops the others."""
    async def patch_one(rb: Runbook) -> Optional[str]:
        try:
            await patch(rb)
        except RemoteServiceError as e:
            reason = e.detail or str(e)
            logger.error(f"Runbook {rb.runbook_id} patch failed due to {reason}")
            return reason
        return None

    results = await asyncio.gather(*(patch_one(rb) for rb in runbooks))

    outcome = PatchOutcome()
    for rb, error in zip(runbooks, results):
        if error is None:
            outcome.patched.append(rb.runbook_id)
        else:
            outcome.failed[rb.runbook_id] = error
    return outcome
