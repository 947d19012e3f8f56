from __future__ import annotations

import os
from contextlib import contextmanager
from contextvars import ContextVar, Token
from enum import Enum
from typing import Any, Callable, Iterable, TypeVar

from markerlint.invariants import never


T = TypeVar("T")

_ORDER_POLICY_ENV = "MARKERLINT_ORDER_POLICY"
_ORDER_POLICY_CONTEXT: ContextVar["OrderPolicy | None"] = ContextVar(
    "markerlint_order_policy",
    default=None,
)


class OrderPolicy(str, Enum):
    SORT = "sort"
    CHECK = "check"
    ENFORCE = "enforce"


def ordered_or_sorted(
    values: Iterable[T],
    *,
    source: str,
    key: Callable[[T], Any] | None = None,
    policy: OrderPolicy | str | None = None,
    on_unsorted: Callable[[dict[str, object]], None] | None = None,
) -> list[T]:
    """Return values in deterministic order under the active policy.

    - `OrderPolicy.SORT`: always sort (stable).
    - `OrderPolicy.CHECK`: keep caller order when already sorted, otherwise
      report through `on_unsorted` and sort.
    - `OrderPolicy.ENFORCE`: require caller order; regressions are engine
      defects.

    Resolution precedence: explicit `policy`, then `order_policy(...)` scope,
    then `MARKERLINT_ORDER_POLICY`, then `SORT`.
    """
    items = list(values)
    resolved = _resolve_policy(policy)
    if resolved is OrderPolicy.SORT:
        return sorted(items, key=key)
    violation = _first_order_violation(items, key=key)
    if violation is None:
        return items
    payload: dict[str, object] = {
        "source": source,
        "previous_index": violation[0],
        "current_index": violation[1],
        "previous_key": repr(violation[2]),
        "current_key": repr(violation[3]),
        "policy": resolved.value,
    }
    if resolved is OrderPolicy.CHECK:
        if on_unsorted is not None:
            on_unsorted(payload)
        return sorted(items, key=key)
    never("caller order regression", **payload)


def _first_order_violation(
    items: list[T], *, key: Callable[[T], Any] | None
) -> tuple[int, int, Any, Any] | None:
    previous: Any = None
    for index, item in enumerate(items):
        current = key(item) if key is not None else item
        if index and current < previous:
            return (index - 1, index, previous, current)
        previous = current
    return None


def _normalize_policy(policy: OrderPolicy | str) -> OrderPolicy:
    if isinstance(policy, OrderPolicy):
        return policy
    try:
        return OrderPolicy(str(policy).strip().lower())
    except ValueError:
        never("unknown order policy", policy=policy)


def _resolve_policy(policy: OrderPolicy | str | None) -> OrderPolicy:
    if policy is not None:
        return _normalize_policy(policy)
    context_policy = _ORDER_POLICY_CONTEXT.get()
    if context_policy is not None:
        return context_policy
    env_policy = os.environ.get(_ORDER_POLICY_ENV, "").strip()
    if env_policy:
        return _normalize_policy(env_policy)
    return OrderPolicy.SORT


def get_order_policy() -> OrderPolicy:
    return _resolve_policy(None)


def set_order_policy(policy: OrderPolicy | str) -> Token[OrderPolicy | None]:
    return _ORDER_POLICY_CONTEXT.set(_normalize_policy(policy))


def reset_order_policy(token: Token[OrderPolicy | None]) -> None:
    _ORDER_POLICY_CONTEXT.reset(token)


@contextmanager
def order_policy(policy: OrderPolicy | str):
    token = set_order_policy(policy)
    try:
        yield
    finally:
        reset_order_policy(token)
