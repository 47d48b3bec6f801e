"""Access policy for donations and claims.

Every permitted (resource kind, operation) pair is listed in ``RULES``
together with the declarative expression the remote document store
evaluates for it. Pairs missing from the table, unauthenticated actors and
requests without the snapshots a rule needs are denied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..contracts import Actor, ClaimStatus
from ..errors import PolicyDenied
from .models import AccessRequest, Decision, Operation, ResourceKind

logger = logging.getLogger(__name__)

Check = Callable[[Actor, AccessRequest], bool]


@dataclass(frozen=True)
class Rule:
    """A grant condition and its rule-language equivalent."""

    check: Check
    expression: str


def field(snapshot: Optional[Mapping[str, Any]], name: str) -> Any:
    """Read the camelCase field ``name`` from a document snapshot."""
    if not snapshot:
        return None
    return snapshot.get(name)


def _owner(snapshot: Optional[Mapping[str, Any]]) -> Any:
    return field(snapshot, "ownerId")


def _claimant(snapshot: Optional[Mapping[str, Any]]) -> Any:
    return field(snapshot, "userId")


def _donation_ref(snapshot: Optional[Mapping[str, Any]]) -> Any:
    return field(snapshot, "donationId")


def _is(actor: Actor, identity: Any) -> bool:
    return identity is not None and identity == actor.id


# ----------------------------------------------------------------------
# Donation rules
def _donation_create(actor: Actor, req: AccessRequest) -> bool:
    return _is(actor, _owner(req.after))


def _donation_read(actor: Actor, req: AccessRequest) -> bool:
    return True


def _donation_update(actor: Actor, req: AccessRequest) -> bool:
    proposed = req.proposed
    if req.before is None or proposed is None:
        return False
    if actor.is_admin:
        return True
    current_owner = _owner(req.before)
    return _is(actor, current_owner) and _owner(proposed) == current_owner


def _donation_delete(actor: Actor, req: AccessRequest) -> bool:
    if req.before is None:
        return False
    return actor.is_admin or _is(actor, _owner(req.before))


# ----------------------------------------------------------------------
# Claim rules
def _claim_create(actor: Actor, req: AccessRequest) -> bool:
    return _is(actor, _claimant(req.after))


def _claim_read(actor: Actor, req: AccessRequest) -> bool:
    if req.before is None:
        return False
    if actor.is_admin or _is(actor, _claimant(req.before)):
        return True
    donation = req.donation
    if donation is None or field(donation, "id") != _donation_ref(req.before):
        return False
    return _is(actor, _owner(donation))


def _status_change_allowed(before: Any, after: Any) -> bool:
    if before == after:
        return True
    try:
        return ClaimStatus(before).can_transition(after)
    except ValueError:
        return False


def _claim_update(actor: Actor, req: AccessRequest) -> bool:
    proposed = req.proposed
    if req.before is None or proposed is None:
        return False
    if actor.is_admin:
        return True
    claimant = _claimant(req.before)
    return (
        _is(actor, claimant)
        and _claimant(proposed) == claimant
        and _donation_ref(proposed) == _donation_ref(req.before)
        and _status_change_allowed(req.before.get("status"), proposed.get("status"))
    )


def _claim_delete(actor: Actor, req: AccessRequest) -> bool:
    if req.before is None:
        return False
    return actor.is_admin or _is(actor, _claimant(req.before))


RULES: Dict[Tuple[ResourceKind, Operation], Rule] = {
    (ResourceKind.DONATION, Operation.CREATE): Rule(
        _donation_create,
        "request.resource.data.ownerId == request.auth.uid",
    ),
    (ResourceKind.DONATION, Operation.READ): Rule(
        _donation_read,
        "true",
    ),
    (ResourceKind.DONATION, Operation.UPDATE): Rule(
        _donation_update,
        "isAdmin() || (resource.data.ownerId == request.auth.uid"
        " && request.resource.data.ownerId == resource.data.ownerId)",
    ),
    (ResourceKind.DONATION, Operation.DELETE): Rule(
        _donation_delete,
        "isAdmin() || resource.data.ownerId == request.auth.uid",
    ),
    (ResourceKind.CLAIM, Operation.CREATE): Rule(
        _claim_create,
        "request.resource.data.userId == request.auth.uid",
    ),
    (ResourceKind.CLAIM, Operation.READ): Rule(
        _claim_read,
        "isAdmin() || resource.data.userId == request.auth.uid"
        " || donationOwner(resource.data.donationId) == request.auth.uid",
    ),
    (ResourceKind.CLAIM, Operation.UPDATE): Rule(
        _claim_update,
        "isAdmin() || (resource.data.userId == request.auth.uid"
        " && request.resource.data.userId == resource.data.userId"
        " && request.resource.data.donationId == resource.data.donationId"
        " && (request.resource.data.status == resource.data.status"
        " || (resource.data.status == 'pending'"
        " && request.resource.data.status in ['picked_up', 'cancelled'])))",
    ),
    (ResourceKind.CLAIM, Operation.DELETE): Rule(
        _claim_delete,
        "isAdmin() || resource.data.userId == request.auth.uid",
    ),
}


class PolicyEngine:
    """Evaluates the access policy for a single request."""

    def __init__(self, rules: Optional[Dict[Tuple[ResourceKind, Operation], Rule]] = None) -> None:
        self.rules = RULES if rules is None else rules

    def evaluate(self, request: AccessRequest) -> Decision:
        """Return ``ALLOW`` only when an explicit rule grants the request."""
        decision = self._decide(request)
        actor_id = request.actor.id if request.actor else "<anonymous>"
        logger.debug(
            f"{request.operation.value} {request.kind.value} by {actor_id}: {decision.value}"
        )
        return decision

    def _decide(self, request: AccessRequest) -> Decision:
        if request.actor is None:
            return Decision.DENY
        rule = self.rules.get((request.kind, request.operation))
        if rule is None:
            return Decision.DENY
        return Decision.ALLOW if rule.check(request.actor, request) else Decision.DENY

    def is_allowed(self, request: AccessRequest) -> bool:
        return self.evaluate(request) is Decision.ALLOW

    def enforce(self, request: AccessRequest) -> None:
        """Raise :class:`PolicyDenied` unless the request is allowed."""
        if not self.is_allowed(request):
            raise PolicyDenied(request.operation.value, request.kind.value)
