"""Request and decision models for the access policy."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from ..contracts import Actor


class ResourceKind(str, Enum):
    DONATION = "donation"
    CLAIM = "claim"


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def _as_snapshot(value: Any) -> Any:
    """Dump models and bring map keys to the camelCase wire form.

    A camelCase key wins over a snake_case spelling of the same field.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if not isinstance(value, Mapping):
        return value
    snapshot = {key: item for key, item in value.items() if "_" not in str(key)}
    for key, item in value.items():
        if "_" in str(key):
            snapshot.setdefault(to_camel(key), item)
    return snapshot


class AccessRequest(BaseModel):
    """A single attempted operation on a resource.

    ``before`` is the stored document (absent on create), ``after`` the
    proposed post-state or delta (absent on read and delete) and
    ``donation`` the donation a claim refers to, when the caller has it.
    Snapshots may be given as models or as field maps in either key style;
    they are stored with camelCase keys.
    """

    actor: Optional[Actor] = Field(default=None, description="None when unauthenticated")
    kind: ResourceKind
    operation: Operation
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    donation: Optional[Dict[str, Any]] = None

    @field_validator("before", "after", "donation", mode="before")
    @classmethod
    def _dump_models(cls, value: Any) -> Any:
        return _as_snapshot(value)

    @property
    def proposed(self) -> Optional[Dict[str, Any]]:
        """Full post-state: the stored document overlaid with the update."""
        if self.after is None:
            return None
        if self.before is None:
            return dict(self.after)
        return {**self.before, **self.after}
