"""Configuration management for JIRA Capacity."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

AUTH_TYPES = ("basic", "bearer")


@dataclass(frozen=True)
class Config:
    """Connection settings for JIRA and where baseline spreadsheets live.

    Built once at startup and passed explicitly to the JIRA client and the
    report pipeline.
    """

    jira_url: str
    jira_email: str = ""
    jira_api_token: str = ""
    jira_pat: str = ""
    auth_type: str = ""
    ca_bundle: str | None = None
    upload_dir: str = ""

    @property
    def is_cloud(self) -> bool:
        """True when the JIRA site is hosted on atlassian.net."""
        host = urlparse(self.jira_url).hostname or ""
        return host.lower().endswith(".atlassian.net")

    @property
    def effective_auth_type(self) -> str:
        """Auth scheme to use: explicit setting, else inferred from the site."""
        if self.auth_type:
            return self.auth_type.lower()
        if self.is_cloud:
            return "basic"
        return "bearer" if self.jira_pat else "basic"

    @property
    def upload_path(self) -> Path:
        """Directory holding uploaded baseline spreadsheets."""
        if self.upload_dir:
            return Path(self.upload_dir).expanduser()
        return get_config_dir() / "uploads"

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.jira_url:
            errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        auth_type = self.effective_auth_type
        if auth_type not in AUTH_TYPES:
            errors.append(f"Auth type must be one of: {', '.join(AUTH_TYPES)}")
        elif auth_type == "bearer":
            if not self.jira_pat:
                errors.append("JIRA personal access token is required for bearer auth")
        else:
            if not self.jira_email:
                errors.append("JIRA email is required")
            elif "@" not in self.jira_email:
                errors.append("JIRA email must be a valid email address")
            if not self.jira_api_token:
                errors.append("JIRA API token is required")

        if self.ca_bundle and not Path(self.ca_bundle).expanduser().exists():
            errors.append(f"CA bundle not found at {self.ca_bundle}")

        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".jira-capacity"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def load_config() -> Config:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Run `jira-capacity init` to set up."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    jira_section = data.get("jira", {})
    capacity_section = data.get("capacity", {})

    config = Config(
        jira_url=jira_section.get("url", "").rstrip("/"),
        jira_email=jira_section.get("email", ""),
        jira_api_token=jira_section.get("api_token", ""),
        jira_pat=jira_section.get("pat", ""),
        auth_type=jira_section.get("auth_type", ""),
        ca_bundle=jira_section.get("ca_bundle") or None,
        upload_dir=capacity_section.get("upload_dir", ""),
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()

    jira_data: dict[str, str] = {"url": config.jira_url}
    if config.jira_email:
        jira_data["email"] = config.jira_email
    if config.jira_api_token:
        jira_data["api_token"] = config.jira_api_token
    if config.jira_pat:
        jira_data["pat"] = config.jira_pat
    if config.auth_type:
        jira_data["auth_type"] = config.auth_type
    if config.ca_bundle:
        jira_data["ca_bundle"] = config.ca_bundle

    data: dict = {"jira": jira_data}
    if config.upload_dir:
        data["capacity"] = {"upload_dir": config.upload_dir}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
