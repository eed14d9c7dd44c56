"""Rule evaluators, one per rule kind."""

from domconform.evaluators.dispatch import evaluate_rule, supported_kinds

__all__ = ["evaluate_rule", "supported_kinds"]
