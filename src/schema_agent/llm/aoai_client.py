from __future__ import annotations
import logging
from urllib.parse import urlparse

from schema_agent.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# api-version expected by the model inference route of project endpoints
MODEL_INFERENCE_API_VERSION = "2024-05-01-preview"


def is_configured(cfg: Settings) -> bool:
    return bool(cfg.azure_openai_endpoint and cfg.azure_openai_api_key and cfg.azure_openai_deployment)


def build_aoai_client(cfg: Settings | None = None):
    """
    Chat client for schema generation, or None when the endpoint is not configured.
    - project endpoint (.../api/projects/...): OpenAI client on <host>/models
    - endpoint containing /openai/v1: OpenAI client with that base_url
    - anything else: AzureOpenAI with an explicit api_version
    """
    cfg = cfg or default_settings
    if not is_configured(cfg):
        logger.info("Azure OpenAI is not configured; schema generation disabled")
        return None

    endpoint = cfg.azure_openai_endpoint.rstrip("/")

    if "api/projects" in endpoint:
        from openai import OpenAI
        parsed = urlparse(endpoint)
        return OpenAI(
            base_url=f"{parsed.scheme}://{parsed.netloc}/models",
            api_key=cfg.azure_openai_api_key,
            default_query={"api-version": MODEL_INFERENCE_API_VERSION},
        )

    if "/openai/v1" in endpoint:
        from openai import OpenAI
        return OpenAI(base_url=endpoint, api_key=cfg.azure_openai_api_key)

    from openai import AzureOpenAI
    return AzureOpenAI(
        azure_endpoint=endpoint,
        api_key=cfg.azure_openai_api_key,
        api_version=cfg.openai_api_version,
    )
