"""Computed field formulas.

A ``ComputedField`` names a registered formula and its input fields. The
form recomputes it whenever one of the inputs changes, and the payload
pipeline recomputes it once more before submission.
"""

from collections.abc import Callable
from typing import Any

from resource_console.descriptors.models import ComputedField, ResourceDescriptor
from resource_console.values import to_number

Formula = Callable[..., float | None]


def bmi(height_cm: Any, weight_kg: Any) -> float | None:
    """Body-mass index from height in centimetres and weight in kilograms.

    Example:
        >>> round(bmi(170, 70), 2)
        24.22
    """
    height = to_number(height_cm)
    weight = to_number(weight_kg)
    if height is None or weight is None or height <= 0 or weight < 0:
        return None
    meters = height / 100
    return weight / (meters * meters)


FORMULAS: dict[str, Formula] = {
    "bmi": bmi,
}


def register_formula(name: str, formula: Formula) -> None:
    FORMULAS[name] = formula


def compute(rule: ComputedField, values: dict[str, Any]) -> float | None:
    """Evaluate *rule* against *values*, rounded to the rule's precision.

    Raises:
        KeyError: If the formula is not registered.
    """
    formula = FORMULAS[rule.formula]
    result = formula(*(values.get(name) for name in rule.inputs))
    if result is None:
        return None
    return round(result, rule.precision)


def apply_computed(
    descriptor: ResourceDescriptor,
    values: dict[str, Any],
    changed: str | None = None,
) -> dict[str, Any]:
    """Return a copy of *values* with computed fields refreshed.

    When *changed* is given, only rules that take it as an input are run.
    """
    updated = dict(values)
    for rule in descriptor.computed:
        if changed is not None and changed not in rule.inputs:
            continue
        updated[rule.name] = compute(rule, updated)
    return updated
