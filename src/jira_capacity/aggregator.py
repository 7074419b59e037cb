"""Fold sprint issues into remaining work per member per iteration."""

from jira_capacity.models import PlannedWork

UNASSIGNED = "Unassigned"


def _member_name(assignee: dict) -> str:
    """Display name, falling back to the account id (Cloud) or user name (Server)."""
    return (
        assignee.get("displayName")
        or assignee.get("accountId")
        or assignee.get("name")
        or UNASSIGNED
    )


def _remaining_seconds(fields: dict) -> int:
    """Remaining estimate in seconds; missing or invalid values count as 0."""
    value = fields.get("timeestimate")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


def aggregate_planned_work(iterations: list[tuple[str, list[dict]]]) -> PlannedWork:
    """Sum remaining estimates per (member, iteration).

    Unassigned issues are skipped. The iteration is taken from the
    ``iteration`` tag set while probing, not from the issue's sprint field.
    """
    totals: dict[str, dict[str, int]] = {}
    seen_iterations: set[str] = set()

    for name, issues in iterations:
        seen_iterations.add(name)
        for issue in issues:
            fields = issue.get("fields") or {}
            assignee = fields.get("assignee")
            if not assignee:
                continue

            member = _member_name(assignee)
            iteration = issue.get("iteration", name)
            member_totals = totals.setdefault(member, {})
            member_totals[iteration] = member_totals.get(iteration, 0) + _remaining_seconds(fields)
            seen_iterations.add(iteration)

    return PlannedWork(
        totals=totals,
        iterations=sorted(seen_iterations),
        members=sorted(totals),
    )
