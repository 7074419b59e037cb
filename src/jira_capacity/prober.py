"""Sprint discovery for a program increment.

Sprints are named ``<PI>_<NN>`` and numbered from 01. JIRA offers no listing
by naming convention, so sprints are probed one at a time until a probe
comes back empty or fails.
"""

import logging

from jira_capacity.models import ProbeFailure, ProbeResult, SearchResult, iteration_name

logger = logging.getLogger(__name__)

# Safety valve against a backend that never returns an empty page.
MAX_ITERATIONS = 50

PROBE_FIELDS = ["assignee", "timeestimate", "sprint"]


def sprint_jql(name: str) -> str:
    """JQL selecting every issue in the named sprint."""
    return f'sprint = "{name}"'


def _is_not_found(result: SearchResult) -> bool:
    """Whether a failed search means the sprint does not exist."""
    if result.status_code == 404:
        return True
    if result.status_code == 400:
        return "does not exist" in (result.error or "").lower()
    return False


def probe_iterations(client, pi: str, max_iterations: int = MAX_ITERATIONS) -> ProbeResult:
    """Probe ``<pi>_01``, ``<pi>_02``, ... and collect each sprint's issues.

    Stops at the first sprint that returns no issues or whose search fails.
    A failure is recorded on the result instead of being raised. Each issue
    is tagged with the sprint it was fetched under as ``issue["iteration"]``,
    because an issue's own sprint field lists every sprint it has been in.

    Args:
        client: Object exposing ``search_issues(jql, fields) -> SearchResult``
        pi: Program increment identifier, e.g. "26_04"
        max_iterations: Highest sequence number to probe

    Returns:
        ProbeResult with (iteration name, issues) pairs in sequence order
    """
    if not pi:
        raise ValueError("Program increment is required")

    iterations: list[tuple[str, list[dict]]] = []

    for number in range(1, max_iterations + 1):
        name = iteration_name(pi, number)
        result = client.search_issues(sprint_jql(name), PROBE_FIELDS)

        if not result.ok:
            failure = ProbeFailure(
                iteration=name,
                status_code=result.status_code,
                message=result.error or "",
                not_found=_is_not_found(result),
            )
            if failure.not_found:
                logger.info("Sprint %s not found, stopping after %d", name, len(iterations))
            else:
                logger.warning(
                    "Probe for sprint %s failed (status %s): %s. "
                    "Report for %s may be incomplete.",
                    name, result.status_code, failure.message, pi,
                )
            return ProbeResult(pi=pi, iterations=iterations, failure=failure)

        if not result.issues:
            logger.debug("Sprint %s has no issues, stopping", name)
            return ProbeResult(pi=pi, iterations=iterations)

        for issue in result.issues:
            issue["iteration"] = name
        iterations.append((name, result.issues))

    logger.warning("Stopped probing %s after %d sprints", pi, max_iterations)
    return ProbeResult(pi=pi, iterations=iterations, hit_limit=True)
