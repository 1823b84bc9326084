"""Tests for the create/patch/skip decision and settle-all patching."""

import copy

import pytest

from rbasync.errors import RemoteServiceError
from rbasync.runbooks.reconcile import apply_patches, index_by_id, plan_import
from rbasync.runbooks.schema import Runbook
from tests.conftest import runbook_payload


def _rbs(*payloads):
    return [Runbook.model_validate(p) for p in payloads]


class TestPlanImport:
    """Partitioning local runbooks against the server set."""

    def test_new_equal_and_remote_only(self):
        a, b, c = runbook_payload("a"), runbook_payload("b"), runbook_payload("c")
        remote = index_by_id(_rbs(a, b))
        local = _rbs(copy.deepcopy(b), c)

        plan = plan_import(remote, local)

        assert [rb.runbook_id for rb in plan.to_create] == ["c"]
        assert plan.to_patch == []
        assert [rb.runbook_id for rb in plan.unchanged] == ["b"]
        assert plan.remote_only == ["a"]

    def test_changed_runbook_is_patched(self):
        remote_b = runbook_payload("b")
        local_b = copy.deepcopy(remote_b)
        local_b["steps"][0]["description"] = "<p>edited</p>"

        plan = plan_import(index_by_id(_rbs(remote_b)), _rbs(local_b))

        assert [rb.runbook_id for rb in plan.to_patch] == ["b"]
        assert plan.to_create == []

    def test_automation_only_change_is_skipped(self):
        remote_b = runbook_payload("b", automations={"A1": [{"name": "restart"}]})
        local_b = copy.deepcopy(remote_b)
        local_b["automations"] = {"A1": [{"name": "restart", "timeout": 30}]}

        plan = plan_import(index_by_id(_rbs(remote_b)), _rbs(local_b))

        assert plan.to_patch == []
        assert [rb.runbook_id for rb in plan.unchanged] == ["b"]

    def test_summary_mentions_every_bucket(self):
        plan = plan_import(index_by_id(_rbs(runbook_payload("a"))), _rbs(runbook_payload("c")))

        assert plan.summary() == "1 to create, 0 to patch, 0 unchanged, 1 only on server"


class TestApplyPatches:
    """Each patch settles on its own."""

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_siblings(self):
        runbooks = _rbs(runbook_payload("a"), runbook_payload("b"), runbook_payload("c"))
        attempted = []

        async def patch(rb):
            attempted.append(rb.runbook_id)
            if rb.runbook_id == "b":
                raise RemoteServiceError("patch runbook b failed", 400, "step 3 references unknown automation")
            return {"ok": True}

        outcome = await apply_patches(runbooks, patch)

        assert sorted(attempted) == ["a", "b", "c"]
        assert outcome.patched == ["a", "c"]
        assert outcome.failed == {"b": "step 3 references unknown automation"}

    @pytest.mark.asyncio
    async def test_failure_is_logged_with_service_text(self, caplog):
        async def patch(rb):
            raise RemoteServiceError("patch failed", 500, "internal error")

        with caplog.at_level("ERROR"):
            await apply_patches(_rbs(runbook_payload("a")), patch)

        assert "Runbook a patch failed due to internal error" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        async def patch(rb):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await apply_patches(_rbs(runbook_payload("a")), patch)

    @pytest.mark.asyncio
    async def test_nothing_to_patch(self):
        async def patch(rb):
            raise AssertionError("not called")

        outcome = await apply_patches([], patch)

        assert outcome.patched == [] and outcome.failed == {}
