"""Business configuration and engine settings loaded from YAML."""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple

import httpx
import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigLoadError
from .schema import BusinessConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "templates" / "business.yaml"
TOKEN_ENV_VAR = "INVOICE_API_TOKEN"


class EngineSettings(BaseModel):
    """Endpoints and tuning for the engine's external collaborators."""

    sequence_api_url: Optional[str] = None
    client_status_url: Optional[str] = None
    counter_store_path: str = ".invoice_counters.json"
    request_timeout: float = 10.0
    printer_chunk_size: int = 100
    printer_chunk_delay: float = 0.05

    @property
    def api_token(self) -> str:
        return os.getenv(TOKEN_ENV_VAR, "")


def load_config(config_path: Optional[str] = None) -> Tuple[BusinessConfig, EngineSettings]:
    """
    Load a YAML configuration file with `business` and `engine` sections.

    Args:
        config_path: Path to the YAML file. Defaults to the bundled template.

    Returns:
        Tuple of (BusinessConfig, EngineSettings).

    Raises:
        ConfigLoadError: If the file is missing, is not valid YAML, or has invalid values.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Config file {path} must contain a mapping at top level")

    try:
        business = BusinessConfig(**(raw.get("business") or {}))
        settings = EngineSettings(**(raw.get("engine") or {}))
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"Loaded config: {path} ({business.client_name or 'unnamed business'}, {business.gst_method.value})")
    return business, settings


async def fetch_client_config(
    settings: EngineSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> BusinessConfig:
    """
    Fetch the business configuration once from the client-status endpoint.

    Raises:
        ConfigLoadError: If no endpoint is configured, the request fails, or the
            client account is inactive.
    """
    if not settings.client_status_url:
        raise ConfigLoadError("No client_status_url configured")

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.request_timeout)
    try:
        response = await client.get(settings.client_status_url, headers={"Content-Type": "application/json"})
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ConfigLoadError(f"Client status request failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise ConfigLoadError(f"Client status request returned status {response.status_code}")

    config = BusinessConfig.from_client_status(data)
    logger.info(f"Fetched client config: prefix={config.inv_prefix}, {config.gst_method.value}")
    return config
