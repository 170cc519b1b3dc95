"""
registry.py - Lookup table from transformation kind to rule function.

Rule modules register each function with the ``@rule`` decorator:

    @rule("tabs_to_spaces", "Tabs → Spaces", "Indentation", spaces=4)
    def tabs_to_spaces(text: str, spaces: int) -> str:
        \"\"\"Replace every tab with N spaces.\"\"\"

The keyword arguments given to ``@rule`` are the parameter defaults; the first
docstring line becomes the description shown by ``clipchef kinds``.

A recipe step is a ``Transformation`` value (kind + params). Steps are written
to the recipe file one per line, as the kind optionally followed by a JSON
object of parameters:

    tabs_to_spaces {"spaces": 2}
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from clip_errors import UnknownTransformError

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, "RuleSpec"] = {}


@dataclass(frozen=True)
class RuleSpec:
    kind:        str
    label:       str
    category:    str
    fn:          Callable[..., str]
    defaults:    Dict[str, Any]
    description: str


def rule(kind: str, label: str, category: str, **defaults):
    """Register the decorated function as the rule for *kind*."""
    def decorator(fn):
        if kind in _REGISTRY:
            raise ValueError(f"Transformation '{kind}' registered twice")
        doc = (fn.__doc__ or "").strip()
        description = next(
            (ln.strip() for ln in doc.splitlines() if ln.strip()), "No description."
        )
        _REGISTRY[kind] = RuleSpec(
            kind=kind,
            label=label,
            category=category,
            fn=fn,
            defaults=dict(defaults),
            description=description,
        )
        return fn
    return decorator


def get_rule(kind: str) -> RuleSpec:
    try:
        return _REGISTRY[kind]
    except KeyError:
        raise UnknownTransformError(kind) from None


def list_rules() -> List[RuleSpec]:
    """All registered rules, in registration order."""
    return list(_REGISTRY.values())


def apply(transformation: "Transformation", text: str) -> str:
    """
    Run one step. Any error from the rule (invalid regex, out-of-range or
    oversized width, wrong type) makes the step a no-op: the input comes back
    unchanged.
    """
    spec = get_rule(transformation.kind)
    kwargs = dict(spec.defaults)
    kwargs.update(transformation.params)
    try:
        return spec.fn(text, **kwargs)
    except Exception as exc:
        logger.debug("Step %s left text unchanged: %s", transformation.kind, exc)
        return text


@dataclass
class Transformation:
    kind:   str
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        spec = get_rule(self.kind)
        unknown = sorted(set(self.params) - set(spec.defaults))
        if unknown:
            raise ValueError(
                f"Transformation '{self.kind}' has no parameter(s): {', '.join(unknown)}"
            )

    @classmethod
    def of(cls, kind: str, **params) -> "Transformation":
        return cls(kind, params)

    @property
    def label(self) -> str:
        return get_rule(self.kind).label

    @property
    def category(self) -> str:
        return get_rule(self.kind).category

    def apply(self, text: str) -> str:
        return apply(self, text)

    # ── Recipe file encoding ──────────────────────────────────────────────────

    def to_line(self) -> str:
        if not self.params:
            return self.kind
        return f"{self.kind} {json.dumps(self.params, ensure_ascii=False, sort_keys=True)}"

    @classmethod
    def from_line(cls, line: str) -> "Transformation":
        kind, _, raw = line.strip().partition(" ")
        params = {}
        if raw.strip():
            params = json.loads(raw)
            if not isinstance(params, dict):
                raise ValueError(f"Parameters for '{kind}' must be a JSON object")
        return cls(kind, params)
