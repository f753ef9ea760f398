from __future__ import annotations

from cascade.core.config import DEFAULT_CHECK_TIMEOUT_SECONDS
from cascade.core.context import RunContext
from cascade.core.result import Ok
from cascade.manifest.model import Dependent
from cascade.services.checker.cache import CheckCache
from cascade.services.checker.model import CacheKey, CheckError, CheckResult, Target
from cascade.services.checker.strategies import CheckStrategy

__all__ = ["Checker"]


class Checker:
    """Decides whether one dependent already requires the target version.

    Every check is bounded by ``timeout`` and goes through the shared cache.
    Errors are returned inside the CheckResult, never raised; the planner
    treats them as "needs update".
    """

    def __init__(
        self,
        *,
        cache: CheckCache,
        timeout: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
        default_ref: str = "main",
    ) -> None:
        self._cache = cache
        self._timeout = timeout
        self._default_ref = default_ref

    @property
    def cache(self) -> CheckCache:
        return self._cache

    def check(
        self,
        dependent: Dependent,
        target: Target,
        strategy: CheckStrategy,
        *,
        ctx: RunContext,
        ref: str | None = None,
    ) -> CheckResult:
        if ctx.cancelled:
            return CheckResult(
                up_to_date=False,
                source="fresh",
                error=CheckError(kind="cancelled", message=ctx.reason or "cancelled"),
            )

        branch = dependent.branch or ref or self._default_ref
        key = CacheKey.for_dependent(dependent, target, ref=branch)
        check_ctx = ctx.with_timeout(self._timeout)

        result, source = self._cache.get_or_fetch(
            key,
            lambda: strategy.check(dependent, target, ref=branch, ctx=check_ctx),
            timeout=check_ctx.remaining(),
        )
        if isinstance(result, Ok):
            return CheckResult(up_to_date=result.value, source=source)

        error = result.error
        if error.kind != "cancelled" and check_ctx.cancelled and not ctx.cancelled:
            error = CheckError(kind="timeout", message=f"check exceeded {self._timeout:g}s: {error.message}")
        return CheckResult(up_to_date=False, source=source, error=error)
