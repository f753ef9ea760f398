"""End-of-run summary for release and resume."""

from __future__ import annotations

from cascade.core.errors import ErrorCode
from cascade.output.console import ConsoleProtocol, Style
from cascade.pipeline import RunReport
from cascade.services.executor.model import ItemStatus


def print_run_report(report: RunReport, console: ConsoleProtocol) -> None:
    counts = {status: 0 for status in ItemStatus}
    for outcome in report.outcomes:
        counts[outcome.status] += 1

    console.header(f"Run summary for {report.target}")
    console.print(f"  {counts[ItemStatus.COMPLETED]} completed")
    console.print(f"  {counts[ItemStatus.SKIPPED]} skipped")
    console.print(f"  {counts[ItemStatus.FAILED]} failed", Style.ERROR if report.failed else Style.DEFAULT)
    if report.already_done:
        console.print(f"  {len(report.already_done)} already done in a previous attempt", Style.DIM)
    if report.retry_count:
        console.print(f"  retry #{report.retry_count}", Style.DIM)

    for outcome in report.failed:
        reason = outcome.reason.splitlines()[0] if outcome.reason else "unknown error"
        console.print(f"  - {outcome.repo}: {reason}", Style.ERROR)

    if report.cancelled:
        console.warning(f"Run cancelled; continue with `cascade resume {report.target.state_id}`")
    elif report.failed:
        console.print(f"hint: fix the failures, then run `cascade resume {report.target.state_id}`", Style.DIM)
    else:
        console.success(f"Release execution completed for {report.target}")


def run_exit_code(report: RunReport) -> int:
    if report.failed or report.cancelled:
        return int(ErrorCode.EXECUTION_ERROR)
    return int(ErrorCode.OK)
