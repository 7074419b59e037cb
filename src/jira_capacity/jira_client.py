"""JIRA API client with retry logic."""

import logging
from datetime import datetime

from jira import JIRA, JIRAError
from requests.exceptions import RequestException
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jira_capacity.config import Config
from jira_capacity.models import SearchResult

logger = logging.getLogger(__name__)


def format_started(started: datetime) -> str:
    """Format a worklog start time the way JIRA expects it; naive times are UTC."""
    if started.tzinfo is None:
        return started.strftime("%Y-%m-%dT%H:%M:%S.000+0000")
    return started.strftime("%Y-%m-%dT%H:%M:%S.000%z")


class RateLimitError(Exception):
    """Raised when JIRA API rate limit is hit."""

    pass


class AuthenticationError(Exception):
    """Raised when JIRA authentication fails."""

    pass


class ConnectionError(Exception):
    """Raised when JIRA server cannot be reached."""

    pass


class JiraRequestError(Exception):
    """Raised when a JIRA request fails; carries the upstream HTTP status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JiraClient:
    """Client for interacting with JIRA Cloud and Data Center APIs."""

    def __init__(self, config: Config) -> None:
        """Initialize JIRA client with configuration."""
        self.config = config
        self._client: JIRA | None = None

    def _get_client(self) -> JIRA:
        """Get or create JIRA client instance."""
        if self._client is None:
            kwargs: dict = {"server": self.config.jira_url, "timeout": 15}
            if self.config.effective_auth_type == "bearer":
                kwargs["token_auth"] = self.config.jira_pat
            else:
                kwargs["basic_auth"] = (self.config.jira_email, self.config.jira_api_token)
            if self.config.ca_bundle:
                kwargs["options"] = {"verify": self.config.ca_bundle}

            try:
                self._client = JIRA(**kwargs)
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed. Check your JIRA credentials."
                    ) from e
                raise
            except RequestException as e:
                logger.error("Failed to create JIRA client: %s", e)
                raise ConnectionError(
                    f"Cannot connect to JIRA server at {self.config.jira_url}. "
                    "Check the URL and your network connection."
                ) from e
        return self._client

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    def _search(self, jql: str, fields: list[str]) -> list[dict]:
        client = self._get_client()
        try:
            if self.config.is_cloud:
                result = client.enhanced_search_issues(jql, maxResults=0, fields=fields)
            else:
                result = client.search_issues(jql, maxResults=False, fields=fields)
        except JIRAError as e:
            if e.status_code == 429:
                raise RateLimitError(
                    "Rate limited by JIRA. Retrying with exponential backoff..."
                ) from e
            raise
        return [self._issue_to_dict(issue) for issue in result]

    def search_issues(self, jql: str, fields: list[str]) -> SearchResult:
        """Search for issues matching a JQL query.

        HTTP and transport failures are returned as a non-OK SearchResult
        rather than raised, so callers can tell "no data" from "error".

        Raises:
            AuthenticationError: If the client cannot authenticate on connect
            ConnectionError: If the server cannot be reached on connect
        """
        self._get_client()
        try:
            issues = self._search(jql, fields)
        except RateLimitError as e:
            return SearchResult(status_code=429, error=str(e))
        except JIRAError as e:
            return SearchResult(status_code=e.status_code, error=e.text or str(e))
        except RequestException as e:
            return SearchResult(status_code=None, error=str(e))
        return SearchResult(status_code=200, issues=issues)

    def _request(self, func, *args, **kwargs):
        """Run a JIRA call, converting its failures to JiraRequestError."""
        try:
            return func(*args, **kwargs)
        except JIRAError as e:
            raise JiraRequestError(e.text or str(e), e.status_code) from e
        except RequestException as e:
            raise JiraRequestError(str(e)) from e

    def list_worklogs(self, issue_id: str) -> list[dict]:
        """Get the worklogs of an issue."""
        client = self._get_client()
        worklogs = self._request(client.worklogs, issue_id)
        return [worklog.raw for worklog in worklogs]

    def add_worklog(self, issue_id: str, time_spent_seconds: int,
                    started: datetime | None = None) -> dict:
        """Log time on an issue.

        Raises:
            JiraRequestError: If JIRA rejects the request
        """
        client = self._get_client()
        worklog = self._request(
            client.add_worklog,
            issue_id,
            timeSpentSeconds=str(time_spent_seconds),
            started=started,
        )
        return worklog.raw

    def update_worklog(self, issue_id: str, worklog_id: str,
                       time_spent_seconds: int | None = None,
                       started: datetime | None = None) -> dict:
        """Change the time or start of an existing worklog.

        Raises:
            JiraRequestError: If JIRA rejects the request
        """
        client = self._get_client()
        worklog = self._request(client.worklog, issue_id, worklog_id)

        fields: dict = {}
        if started is not None:
            fields["started"] = format_started(started)
        if time_spent_seconds is not None:
            fields["timeSpentSeconds"] = time_spent_seconds
        self._request(worklog.update, fields=fields)
        return worklog.raw

    def delete_worklog(self, issue_id: str, worklog_id: str) -> None:
        """Delete a worklog.

        Raises:
            JiraRequestError: If JIRA rejects the request
        """
        client = self._get_client()
        worklog = self._request(client.worklog, issue_id, worklog_id)
        self._request(worklog.delete)

    def _issue_to_dict(self, issue) -> dict:
        """Convert JIRA issue object to dictionary."""
        return {
            "key": issue.key,
            "fields": issue.raw.get("fields", {}),
        }
