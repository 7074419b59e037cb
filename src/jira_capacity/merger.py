"""Merge planned work with baseline capacity and classify the result."""

from jira_capacity.models import (
    Band,
    BaselineCapacity,
    CapacityCell,
    CapacityReport,
    MemberCapacity,
    PlannedWork,
)

# Assumed availability for anyone missing from the baseline spreadsheet,
# including when no spreadsheet has been uploaded.
DEFAULT_BASELINE_HOURS = 80
DEFAULT_BASELINE_SECONDS = DEFAULT_BASELINE_HOURS * 3600

# Load ratios above these thresholds move a cell into the next band.
YELLOW_THRESHOLD = 1.00
RED_THRESHOLD = 1.05


def classify(planned: int, baseline: int) -> Band:
    """Classify planned seconds against available seconds."""
    if baseline <= 0:
        return Band.RED if planned > 0 else Band.NORMAL
    ratio = planned / baseline
    if ratio > RED_THRESHOLD:
        return Band.RED
    if ratio > YELLOW_THRESHOLD:
        return Band.YELLOW
    return Band.NORMAL


def merge_capacity(
    pi: str,
    planned: PlannedWork,
    baseline: BaselineCapacity | None,
    truncated: bool = False,
) -> CapacityReport:
    """Build the capacity report for every (member, iteration) with planned work.

    Pairs without a baseline value fall back to DEFAULT_BASELINE_SECONDS.
    """
    members: list[MemberCapacity] = []

    for name in sorted(planned.totals):
        cells: dict[str, CapacityCell] = {}
        for iteration in sorted(planned.totals[name]):
            planned_seconds = planned.totals[name][iteration]
            declared = baseline.get(name, iteration) if baseline else None
            available = DEFAULT_BASELINE_SECONDS if declared is None else declared
            cells[iteration] = CapacityCell(
                planned=planned_seconds,
                baseline=available,
                is_default=declared is None,
                band=classify(planned_seconds, available),
            )
        members.append(MemberCapacity(name=name, cells=cells))

    return CapacityReport(
        pi=pi,
        iterations=sorted(planned.iterations),
        members=members,
        baseline=baseline,
        truncated=truncated,
    )


def report_to_dict(report: CapacityReport) -> dict:
    """Convert CapacityReport to a JSON-serializable dict."""
    members = []
    for member in report.members:
        members.append({
            "name": member.name,
            "capacity": {it: cell.planned for it, cell in member.cells.items()},
            "baseline": {it: cell.baseline for it, cell in member.cells.items()},
            "status": {it: cell.band.value for it, cell in member.cells.items()},
        })

    baseline = None
    if report.baseline is not None:
        baseline = {
            "members": list(report.baseline.members),
            "capacity": {
                name: dict(per_iteration)
                for name, per_iteration in report.baseline.capacity.items()
            },
        }

    return {
        "pi": report.pi,
        "iterations": list(report.iterations),
        "members": members,
        "baselineCapacity": baseline,
        "truncated": report.truncated,
    }
