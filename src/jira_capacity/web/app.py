"""Flask application factory for JIRA Capacity web interface."""

import logging

from flask import Flask

from jira_capacity.capacity import get_capacity_config
from jira_capacity.config import Config
from jira_capacity.exceptions import ConfigNotFoundError, InvalidConfigError

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> Flask:
    """Create and configure the Flask application.

    If no config is given it is loaded from disk; when that fails the app
    still starts and the data endpoints answer 503 with the reason.
    """
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "jira-capacity-local-dev"
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024

    config_error = None
    if config is None:
        try:
            config = get_capacity_config()
        except ConfigNotFoundError as e:
            config_error = str(e)
        except InvalidConfigError as e:
            logger.error("%s", e)
            config_error = str(e)
    app.config["CAPACITY_CONFIG"] = config
    app.config["CAPACITY_CONFIG_ERROR"] = config_error

    from jira_capacity.web.routes import bp
    app.register_blueprint(bp)

    return app
