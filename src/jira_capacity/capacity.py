"""Capacity report assembly."""

import logging

from jira_capacity.aggregator import aggregate_planned_work
from jira_capacity.baseline import load_baseline
from jira_capacity.config import Config, config_exists, load_config
from jira_capacity.exceptions import (
    ConfigNotFoundError,
    InvalidConfigError,
    JiraAuthError,
    JiraConnectionError,
)
from jira_capacity.jira_client import (
    AuthenticationError,
    JiraClient,
)
from jira_capacity.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from jira_capacity.merger import merge_capacity
from jira_capacity.models import CapacityReport
from jira_capacity.prober import probe_iterations

logger = logging.getLogger(__name__)


def get_capacity_config() -> Config:
    """Load the configuration for the report pipeline.

    Raises:
        ConfigNotFoundError: If config file not found
        InvalidConfigError: If config is invalid
    """
    if not config_exists():
        raise ConfigNotFoundError(
            "Configuration not found. Run `jira-capacity init` to create "
            "~/.jira-capacity/config.toml."
        )

    try:
        return load_config()
    except ValueError as e:
        raise InvalidConfigError(str(e))


def build_capacity_report(pi: str, config: Config, client=None) -> CapacityReport:
    """Build the capacity report for a program increment.

    Sprints are probed and aggregated first; the baseline spreadsheet is
    loaded independently and both are merged.

    Args:
        pi: Program increment identifier, e.g. "26_04"
        config: Loaded configuration
        client: Issue search client; a JiraClient is created if omitted

    Raises:
        JiraAuthError: If JIRA authentication fails
        JiraConnectionError: If JIRA cannot be reached
    """
    if client is None:
        client = JiraClient(config)

    try:
        probe = probe_iterations(client, pi)
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your credentials in "
            "~/.jira-capacity/config.toml."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))

    planned = aggregate_planned_work(probe.iterations)
    baseline = load_baseline(pi, config.upload_path)

    logger.info(
        "Capacity for %s: %d sprints, %d members, baseline %s",
        pi,
        len(planned.iterations),
        len(planned.members),
        baseline.source if baseline else "missing",
    )
    return merge_capacity(pi, planned, baseline, truncated=probe.truncated)
