class Context: ...


class ScopeGuard: ...


def partially_allowed(  # markerlint: allow[scope-guard-not-last]
    guard: Ref[ScopeGuard],  # expect: scope-guard-not-by-value
    a: int,
) -> None: ...


def fully_allowed(  # markerlint: allow
    guard: Ref[ScopeGuard],
    a: int,
) -> None: ...


@staticmethod  # markerlint: allow[context-not-first]
def decorator_line_allowed(
    a: int,
    ctx: Context,
) -> None: ...


def allowed_inside_signature(
    a: int,
    ctx: Context,  # markerlint: allow[context-not-first]
) -> None: ...


def comment_in_body_does_not_count(
    a: int,
    ctx: Context,  # expect: context-not-first
) -> None:
    # markerlint: allow
    return None


def unknown_codes_are_ignored(  # markerlint: allow[not-a-rule]
    a: int,
    ctx: Context,  # expect: context-not-first
) -> None: ...


def nested_decorator_comment_stays_nested(
    a: int,
    ctx: Context,  # expect: context-not-first
) -> None:
    @cache  # markerlint: allow
    def inner() -> None: ...

    return inner()
