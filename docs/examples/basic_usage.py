"""
rbasync - Basic Usage Examples

Programmatic use of the export/import flows, e.g. from a scheduled job.
"""

import asyncio
import logging
from pathlib import Path

from rbasync.rba.client import RbaClient
from rbasync.settings import load_settings
from rbasync.sync import export_runbooks, import_runbooks


# =============================================================================
# Example 1: Export all runbooks with step HTML split into files
# =============================================================================

async def example_export(target: Path):
    """Write every runbook into target, one JSON per runbook."""
    settings = load_settings().require_credentials()
    async with RbaClient(settings) as client:
        result = await export_runbooks(client, target, split_html=True)
    print(f"Wrote {len(result.written)} runbook file(s) to {target}")


# =============================================================================
# Example 2: Import and report failed patches
# =============================================================================

async def example_import(source: Path, publish: bool = False):
    """Create missing runbooks and patch changed ones."""
    settings = load_settings(overrides={"retries": 3}).require_credentials()
    async with RbaClient(settings) as client:
        result = await import_runbooks(client, source, publish=publish)

    print(result.plan.summary())
    for runbook_id, reason in result.patches.failed.items():
        print(f"  {runbook_id}: {reason}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    workdir = Path("./runbooks")
    workdir.mkdir(exist_ok=True)
    asyncio.run(example_export(workdir))
    asyncio.run(example_import(workdir))
