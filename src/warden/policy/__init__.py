"""
Policy module for Warden.

This module implements the attribute-based access-control core:

    - builder: Per-principal rule catalogue (role, weekend gate, project scope)
    - engine: Per-instance decisions and field projection
    - compiler: Rule conditions lowered to a storage predicate for listings

Key concepts:
    - Allow-list only: everything is denied unless a rule grants it
    - Field grants: rules may cover ALL_FIELDS or an explicit field set
    - One rule set per request, never reused across requests
"""

from warden.policy.builder import build_rule_set
from warden.policy.compiler import compile_predicate
from warden.policy.engine import PolicyEngine, can, project

__all__ = [
    "PolicyEngine",
    "build_rule_set",
    "can",
    "compile_predicate",
    "project",
]
