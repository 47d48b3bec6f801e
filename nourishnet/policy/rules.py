"""Render the policy table as declarative rules for the remote document store."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .engine import RULES, Rule
from .models import Operation, ResourceKind

COLLECTIONS: Dict[ResourceKind, Tuple[str, str]] = {
    ResourceKind.DONATION: ("donations", "donationId"),
    ResourceKind.CLAIM: ("claims", "claimId"),
}

_HELPERS = [
    "function signedIn() {",
    "  return request.auth != null;",
    "}",
    "function isAdmin() {",
    "  return signedIn() && request.auth.token.role == 'admin';",
    "}",
    "function donationOwner(donationId) {",
    "  return get(/databases/$(database)/documents/donations/$(donationId)).data.ownerId;",
    "}",
]


def _indent(lines: Iterable[str], depth: int) -> List[str]:
    pad = "  " * depth
    return [pad + line if line else line for line in lines]


def _collection_block(
    kind: ResourceKind, rules: Dict[Tuple[ResourceKind, Operation], Rule]
) -> List[str]:
    collection, doc_var = COLLECTIONS[kind]
    lines = [f"match /{collection}/{{{doc_var}}} {{"]
    for operation in Operation:
        rule = rules.get((kind, operation))
        if rule is None:
            continue
        lines.append(f"  allow {operation.value}: if signedIn() && ({rule.expression});")
    lines.append("}")
    return lines


def render_rules(
    rules: Optional[Dict[Tuple[ResourceKind, Operation], Rule]] = None,
) -> str:
    """Return rules text equivalent to the policy table.

    Operations without a rule get no ``allow`` statement, and a catch-all
    match denies every other document.
    """
    rules = RULES if rules is None else rules
    body: List[str] = list(_HELPERS)
    for kind in ResourceKind:
        body.append("")
        body.extend(_collection_block(kind, rules))
    body.extend(["", "match /{document=**} {", "  allow read, write: if false;", "}"])

    lines = [
        "rules_version = '2';",
        "service cloud.firestore {",
        "  match /databases/{database}/documents {",
        *_indent(body, 2),
        "  }",
        "}",
    ]
    return "\n".join(lines) + "\n"
