"""Result types for loading persisted run state."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel

from ..contracts import SCHEMA_VERSION, RunState


class AbsentState(BaseModel):
    """No run state has been saved."""

    kind: Literal["absent"] = "absent"


class IncompatibleState(BaseModel):
    """A document exists but must not be trusted."""

    kind: Literal["incompatible"] = "incompatible"
    reason: str
    found_version: Optional[str] = None


class UsableState(BaseModel):
    kind: Literal["usable"] = "usable"
    state: RunState


LoadedState = Union[AbsentState, IncompatibleState, UsableState]


def check_document(data: object) -> LoadedState:
    """Validate a decoded run-state document against the current schema."""
    if not isinstance(data, dict):
        return IncompatibleState(reason="document is not a JSON object")
    version = data.get("schemaVersion")
    if version != SCHEMA_VERSION:
        return IncompatibleState(
            reason=f"schema version {version!r} does not match {SCHEMA_VERSION!r}",
            found_version=version if isinstance(version, str) else None,
        )
    try:
        state = RunState.model_validate(data)
    except ValueError as exc:
        return IncompatibleState(reason=f"invalid document: {exc}", found_version=version)
    return UsableState(state=state)
