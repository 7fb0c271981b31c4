"""
Switchboard routing module.

Deterministic rule-table classification, handoff validation and the router
core that invokes one specialist at a time.
"""

__all__ = [
    "schemas",
    "errors",
    "handler_registry",
    "rule_table",
    "conflict",
    "classifier",
    "handoff",
    "router",
]
