"""Selection expression expansion."""

from typing import List, Optional, Tuple

from ..errors import EmptySelection
from .registry import REGISTRY, TargetRegistry

DEFAULT_EXPRESSION = "all"


def split_expression(expression: Optional[str]) -> List[str]:
    """Split a comma separated expression into trimmed, non-empty tokens."""
    if not expression:
        return []
    return [token.strip() for token in expression.split(",") if token.strip()]


def expand_token(token: str, registry: TargetRegistry = REGISTRY) -> Optional[List[str]]:
    """Expand one token to concrete target ids, ``None`` when unknown.

    Target ids win over aliases with the same name.
    """
    key = token.strip().lower()
    if registry.lookup(key) is not None:
        return [key]
    aliases = registry.aliases()
    if key in aliases:
        return list(aliases[key])
    return None


def select_targets(
    expression: Optional[str],
    registry: TargetRegistry = REGISTRY,
) -> Tuple[List[str], List[str]]:
    """Resolve ``expression`` into ``(run_set, unknown_tokens)``.

    The run set keeps the first occurrence of each id in token order. An
    empty or blank expression means everything. Unknown tokens are returned
    for the caller to report; they never abort the selection on their own.

    Raises:
        EmptySelection: nothing valid remained after expansion.
    """
    tokens = split_expression(expression) or [DEFAULT_EXPRESSION]

    run_set: List[str] = []
    seen = set()
    unknown: List[str] = []

    for token in tokens:
        expanded = expand_token(token, registry)
        if expanded is None:
            unknown.append(token)
            continue
        for target_id in expanded:
            if target_id not in seen:
                seen.add(target_id)
                run_set.append(target_id)

    if not run_set:
        raise EmptySelection(
            f"selection {expression!r} matched no targets"
            + (f" (unknown: {', '.join(unknown)})" if unknown else "")
        )
    return run_set, unknown
