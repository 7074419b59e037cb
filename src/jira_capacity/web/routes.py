"""HTTP route handlers for JIRA Capacity web interface."""

import logging
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from jira_capacity.baseline import is_valid_pi, store_baseline
from jira_capacity.capacity import build_capacity_report
from jira_capacity.exceptions import (
    InvalidUploadError,
    JiraAuthError,
    JiraConnectionError,
)
from jira_capacity.jira_client import AuthenticationError, JiraClient, JiraRequestError
from jira_capacity.jira_client import ConnectionError as JiraClientConnectionError
from jira_capacity.merger import report_to_dict

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)

DEFAULT_ISSUES_JQL = "assignee = currentUser() AND statusCategory != Done ORDER BY updated DESC"
ISSUE_FIELDS = ["summary", "issuetype", "status", "project"]


def _config():
    return current_app.config.get("CAPACITY_CONFIG")


def _config_error() -> str:
    return current_app.config.get("CAPACITY_CONFIG_ERROR") or "Configuration not found"


def _no_config():
    return jsonify({"error": _config_error()}), 503


@bp.route("/health")
def health():
    """Health check endpoint."""
    if _config() is not None:
        return jsonify({"status": "ok", "config_loaded": True})
    else:
        return jsonify({
            "status": "error",
            "config_loaded": False,
            "message": _config_error(),
        }), 503


@bp.route("/api/capacity")
def api_capacity():
    """Return the capacity report for a program increment."""
    pi = request.args.get("pi", "").strip()
    if not pi:
        return jsonify({"error": "Query parameter 'pi' is required."}), 400
    if not is_valid_pi(pi):
        return jsonify({"error": f"Invalid PI: {pi!r}."}), 400

    config = _config()
    if config is None:
        return _no_config()

    try:
        report = build_capacity_report(pi, config)
        return jsonify(report_to_dict(report))
    except JiraAuthError as e:
        return jsonify({"error": str(e)}), 401
    except JiraConnectionError as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        logger.exception("Failed to build capacity report for %s", pi)
        return jsonify({"error": "Failed to build capacity report"}), 500


@bp.route("/api/capacity/upload", methods=["POST"])
def api_upload_baseline():
    """Store a baseline spreadsheet for a program increment."""
    config = _config()
    if config is None:
        return _no_config()

    pi = request.form.get("pi", "").strip()
    upload = request.files.get("file")

    try:
        filename = store_baseline(
            pi,
            upload.filename if upload else None,
            upload.stream if upload else None,
            config.upload_path,
        )
    except InvalidUploadError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"pi": pi, "filename": filename}), 201


@bp.route("/api/issues")
def api_issues():
    """List issues matching a JQL query (open issues of the current user by default)."""
    config = _config()
    if config is None:
        return _no_config()

    jql = request.args.get("jql", "").strip() or DEFAULT_ISSUES_JQL

    try:
        result = JiraClient(config).search_issues(jql, ISSUE_FIELDS)
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except JiraClientConnectionError as e:
        return jsonify({"error": str(e)}), 503

    if not result.ok:
        return jsonify({"error": result.error or "Failed to fetch issues"}), result.status_code or 502

    issues = []
    for issue in result.issues:
        fields = issue.get("fields", {})
        issues.append({
            "key": issue["key"],
            "summary": fields.get("summary"),
            "issuetype": (fields.get("issuetype") or {}).get("name"),
            "status": (fields.get("status") or {}).get("name"),
            "project": (fields.get("project") or {}).get("key"),
        })
    return jsonify(issues)


STARTED_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")


def _parse_started(value) -> datetime | None:
    """Parse a worklog start such as ``2025-09-04T10:00:00.000+0000``."""
    if value in (None, ""):
        return None
    if isinstance(value, str):
        for fmt in STARTED_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
    raise ValueError(f"Invalid 'started' value: {value!r}")


def _parse_seconds(value, required: bool) -> int | None:
    if value is None and not required:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError("'timeSpentSeconds' must be a positive integer")
    return value


def _call_jira(config, action):
    """Run ``action(client)`` and map JIRA failures to JSON error responses.

    Returns:
        (result, None) on success, (None, response) on failure
    """
    try:
        return action(JiraClient(config)), None
    except AuthenticationError as e:
        return None, (jsonify({"error": str(e)}), 401)
    except JiraClientConnectionError as e:
        return None, (jsonify({"error": str(e)}), 503)
    except JiraRequestError as e:
        logger.warning("JIRA worklog request failed (status %s): %s", e.status_code, e)
        return None, (jsonify({"error": str(e)}), e.status_code or 502)


@bp.route("/api/issues/<issue_id>/worklogs")
def api_list_worklogs(issue_id):
    """Return the worklogs of an issue."""
    config = _config()
    if config is None:
        return _no_config()

    worklogs, error = _call_jira(config, lambda client: client.list_worklogs(issue_id))
    if error:
        return error
    return jsonify(worklogs)


@bp.route("/api/issues/<issue_id>/worklogs", methods=["POST"])
def api_create_worklog(issue_id):
    """Log time on an issue."""
    config = _config()
    if config is None:
        return _no_config()

    body = request.get_json(silent=True) or {}
    try:
        seconds = _parse_seconds(body.get("timeSpentSeconds"), required=True)
        started = _parse_started(body.get("started"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    worklog, error = _call_jira(
        config, lambda client: client.add_worklog(issue_id, seconds, started=started)
    )
    if error:
        return error
    return jsonify(worklog), 201


@bp.route("/api/issues/<issue_id>/worklogs/<worklog_id>", methods=["PUT"])
def api_update_worklog(issue_id, worklog_id):
    """Change the time or start of a worklog."""
    config = _config()
    if config is None:
        return _no_config()

    body = request.get_json(silent=True) or {}
    try:
        seconds = _parse_seconds(body.get("timeSpentSeconds"), required=False)
        started = _parse_started(body.get("started"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if seconds is None and started is None:
        return jsonify({"error": "Nothing to update."}), 400

    worklog, error = _call_jira(
        config,
        lambda client: client.update_worklog(
            issue_id, worklog_id, time_spent_seconds=seconds, started=started
        ),
    )
    if error:
        return error
    return jsonify(worklog)


@bp.route("/api/issues/<issue_id>/worklogs/<worklog_id>", methods=["DELETE"])
def api_delete_worklog(issue_id, worklog_id):
    """Delete a worklog."""
    config = _config()
    if config is None:
        return _no_config()

    _, error = _call_jira(config, lambda client: client.delete_worklog(issue_id, worklog_id))
    if error:
        return error
    return "", 204
