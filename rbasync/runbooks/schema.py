from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Service payloads carry more fields than we touch; keep them for round-trips.
_PASSTHROUGH = ConfigDict(extra="allow", populate_by_name=True)


class Automation(BaseModel):
    model_config = _PASSTHROUGH

    name: str = ""


class Step(BaseModel):
    model_config = _PASSTHROUGH

    number: int
    description: Optional[str] = None
    automation_id: Optional[str] = Field(default=None, alias="automationId")


class Runbook(BaseModel):
    """
    A runbook as exchanged with RBA and stored on disk.

    `runbook_id` is the `_runbookId` field, which is the same in export mode
    and standard mode, so it is the key used for diffing.
    """
    model_config = _PASSTHROUGH

    runbook_id: str = Field(alias="_runbookId")
    name: str = ""
    description: Optional[str] = None
    steps: List[Step] = Field(default_factory=list)
    automations: Dict[str, List[Automation]] = Field(default_factory=dict)
    parameters: List[Any] = Field(default_factory=list)
    tags: List[Any] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict using service field names, without fields the source never had."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")

    def step_by_number(self) -> Dict[int, Step]:
        return {step.number: step for step in self.steps}


def steps_payload(runbook: Runbook) -> List[Dict[str, Any]]:
    return [s.model_dump(by_alias=True, exclude_unset=True, mode="json") for s in runbook.steps]


def runbooks_equal(a: Runbook, b: Runbook) -> bool:
    """
    Compare the fields a patch would change.

    Automations and the id are ignored: automation ids differ between fetch
    modes even when nothing was edited.
    """
    return (
        steps_payload(a) == steps_payload(b)
        and a.parameters == b.parameters
        and a.tags == b.tags
        and a.name == b.name
        and a.description == b.description
    )
