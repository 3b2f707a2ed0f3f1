"""
Configuration for the telemetry query service.

Settings come from an optional YAML file (with ${VAR} expansion) and are
then overridden by DASH0_* environment variables.
"""

import os
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field


REGION_BASE_URLS = {
    "eu-west-1": "https://api.eu-west-1.aws.dash0.com",
    "us-east-1": "https://api.us-east-1.aws.dash0.com",
    "us-west-2": "https://api.us-west-2.aws.dash0.com",
}

DEFAULT_REGION = "eu-west-1"


class ConfigError(ValueError):
    """Raised when settings are incomplete or invalid."""


class Settings(BaseModel):
    """Connection settings for the Dash0 API."""
    auth_token: Optional[str] = Field(default=None, description="Bearer token for API authentication")
    region: str = Field(default=DEFAULT_REGION)
    base_url: Optional[str] = Field(default=None, description="Overrides the region-derived URL")
    dataset: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)
    timeout_seconds: float = Field(default=60.0)

    def model_post_init(self, __context: Any) -> None:
        if not self.base_url:
            self.base_url = REGION_BASE_URLS.get(self.region)

    def validate_settings(self) -> None:
        """Check that required settings are present and usable.

        Raises:
            ConfigError: If the token or base URL is missing, or the base
                URL is not HTTPS
        """
        if not self.auth_token:
            raise ConfigError("DASH0_AUTH_TOKEN is required")
        if not self.base_url:
            raise ConfigError("unable to determine base URL: set DASH0_REGION or DASH0_BASE_URL")
        if not self.base_url.startswith("https://"):
            raise ConfigError(f"base URL must use HTTPS: {self.base_url}")


def parse_bool(value: Optional[str]) -> bool:
    """Parse a boolean flag; anything but true/1/yes is False."""
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes")


def _expand_env(obj: Any) -> Any:
    """
    Recursively expand environment variables in strings.
    Unresolved ${VAR} placeholders are converted to None to allow downstream defaults.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        expanded = os.path.expandvars(obj)
        if "${" in expanded and "}" in expanded:
            return None
        return expanded
    return obj


def _region_from_url(value: str) -> Optional[str]:
    for region in REGION_BASE_URLS:
        if region in value:
            return region
    return None


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    token = environ.get("DASH0_AUTH_TOKEN") or environ.get("DASH0_TOKEN")
    if token:
        overrides["auth_token"] = token

    if environ.get("DASH0_BASE_URL"):
        overrides["base_url"] = environ["DASH0_BASE_URL"]

    region = environ.get("DASH0_REGION")
    if region:
        # A full host or URL passed as the region doubles as the base URL
        if region.startswith("api.") or region.startswith("https://"):
            overrides["base_url"] = region if region.startswith("https://") else f"https://{region}"
            region = _region_from_url(region) or region
        overrides["region"] = region

    if environ.get("DASH0_DATASET"):
        overrides["dataset"] = environ["DASH0_DATASET"]

    if "DASH0_DEBUG" in environ:
        overrides["debug"] = parse_bool(environ["DASH0_DEBUG"])

    if environ.get("DASH0_TIMEOUT"):
        try:
            overrides["timeout_seconds"] = float(environ["DASH0_TIMEOUT"])
        except ValueError:
            pass

    return overrides


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file and the environment.

    Args:
        path: Optional YAML file with settings keys at the top level
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings with environment values taking precedence
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if path:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"config file must contain a mapping: {path}")
        data = {k: v for k, v in _expand_env(loaded).items() if v is not None}

    data.update(_env_overrides(environ))
    return Settings(**data)
