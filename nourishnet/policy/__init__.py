"""Resource access policy for donations and claims."""

from .engine import RULES, PolicyEngine, Rule
from .models import AccessRequest, Decision, Operation, ResourceKind
from .rules import render_rules

__all__ = [
    "AccessRequest",
    "Decision",
    "Operation",
    "PolicyEngine",
    "RULES",
    "ResourceKind",
    "Rule",
    "render_rules",
]
