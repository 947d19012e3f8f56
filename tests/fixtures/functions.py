class Context: ...


class ScopeGuard: ...


def no_markers(a: int, b: str) -> None: ...


def context_first(
    ctx: Context,
    a: int,
    b: int,
) -> None: ...


def context_first_then_another(
    ctx: Context,
    a: int,
    ctx2: Context,
) -> None: ...


def context_late(
    a: int,
    ctx: Context,  # expect: context-not-first
) -> None: ...


def context_late_twice(
    a: int,
    ctx1: Context,  # expect: context-not-first
    b: int,
    ctx2: Context,
) -> None: ...


def guard_first(
    guard: ScopeGuard,  # expect: scope-guard-not-last
    a: int,
) -> None: ...


def guard_last(
    a: int,
    guard: ScopeGuard,
) -> None: ...


def guard_by_reference(
    a: int,
    guard: Ref[ScopeGuard],  # expect: scope-guard-not-by-value
) -> None: ...


def guard_by_reference_first(
    guard: RefMut[ScopeGuard],  # expect: scope-guard-not-last, scope-guard-not-by-value
    a: int,
) -> None: ...


def everything_out_of_place(
    a: int,
    guard: Ptr[ScopeGuard],  # expect: scope-guard-not-last, scope-guard-not-by-value
    ctx: Context,  # expect: context-not-first
) -> None: ...


def both_in_place(
    ctx: Context,
    a: int,
    guard: ScopeGuard,
) -> None: ...


def only_guard(guard: ScopeGuard) -> None: ...


def double_reference(
    guard: Ref[Ptr[ScopeGuard]],  # expect: scope-guard-not-by-value
) -> None: ...


def variadics_are_not_positions(
    ctx: Context,
    *args: int,
    guard: ScopeGuard,
    **kwargs: int,
) -> None: ...


def forward_references(
    a: int,
    guard: "ScopeGuard",  # expect: scope-guard-not-last
    ctx: "Context",  # expect: context-not-first
) -> None: ...


async def async_context_late(
    a: int,
    ctx: Context,  # expect: context-not-first
) -> None: ...
