"""Rule evaluation: conditions, cooldown, lifecycle and the evaluation worker."""

from alertengine.evaluation.conditions import evaluate, evaluate_rule, matched_conditions
from alertengine.evaluation.cooldown import should_suppress
from alertengine.evaluation.lifecycle import AUTO_RESOLVE_REASON, Transition, decide
from alertengine.evaluation.worker import EvaluationWorker

__all__ = [
    "evaluate",
    "evaluate_rule",
    "matched_conditions",
    "should_suppress",
    "AUTO_RESOLVE_REASON",
    "Transition",
    "decide",
    "EvaluationWorker",
]
