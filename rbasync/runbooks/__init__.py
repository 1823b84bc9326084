"""Runbook model, local file store, step file split/merge, id remapping and reconciliation."""

from rbasync.runbooks.reconcile import SyncPlan, plan_import
from rbasync.runbooks.schema import Automation, Runbook, Step, runbooks_equal
from rbasync.runbooks.store import RunbookFile, RunbookStore

__all__ = [
    "Automation",
    "Runbook",
    "Step",
    "runbooks_equal",
    "RunbookFile",
    "RunbookStore",
    "SyncPlan",
    "plan_import",
]
