"""
Client Configuration Module

Handles API key loading, provider client setup and endpoint overrides.
"""

import os
import logging
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from .constants import (
    GEMINI_API_BASE,
    GEMINI_UPLOAD_BASE,
    CATALOG_API_BASE,
    CATALOG_CDN_BASE,
    TIER_POLICIES,
)
from .gemini_client import GeminiRestClient

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/forge.db"


class ClientConfig:
    """Manages API key loading and provider client configuration."""

    def __init__(self, env_path: Optional[str] = None):
        """Initialize client configuration."""
        self.env_path = env_path or ".env"

        # API Keys
        self.gemini_api_key: Optional[str] = None

        # Endpoints (overridable from the environment)
        self.gemini_api_base = GEMINI_API_BASE
        self.gemini_upload_base = GEMINI_UPLOAD_BASE
        self.catalog_api_base = CATALOG_API_BASE
        self.catalog_cdn_base = CATALOG_CDN_BASE
        self.database_url = DEFAULT_DATABASE_URL

        self.model_config = {tier: policy["model_id"] for tier, policy in TIER_POLICIES.items()}

        self.clients: Dict[str, Any] = {}

        self._load_environment()
        self._configure_clients()

    def _load_environment(self):
        """Load API keys from the .env file (if any) and apply endpoint overrides."""
        logger.info(f"🔧 Loading environment from: {self.env_path}")

        if os.path.exists(self.env_path):
            load_dotenv(dotenv_path=self.env_path)
            logger.info(f"✅ Loaded .env file from: {self.env_path}")
        else:
            logger.warning(f"⚠️ .env file not found at {self.env_path}, using process environment")

        self.gemini_api_key = os.getenv("GEMINI_API_KEY")
        self.gemini_api_base = os.getenv("GEMINI_API_BASE", self.gemini_api_base)
        self.gemini_upload_base = os.getenv("GEMINI_UPLOAD_BASE", self.gemini_upload_base)
        self.catalog_api_base = os.getenv("CATALOG_API_BASE", self.catalog_api_base)
        self.catalog_cdn_base = os.getenv("CATALOG_CDN_BASE", self.catalog_cdn_base)
        self.database_url = os.getenv("DATABASE_URL", self.database_url)

        logger.info(f"  GEMINI_API_KEY: {'✅ Available' if self.gemini_api_key else '❌ Missing'}")

    def _configure_clients(self):
        """Configure the provider client."""
        gemini_client = None
        if self.gemini_api_key:
            gemini_client = GeminiRestClient(
                api_key=self.gemini_api_key,
                api_base=self.gemini_api_base,
                upload_base=self.gemini_upload_base,
            )
            logger.info(f"✅ Gemini client configured ({self.gemini_api_base})")
        else:
            logger.warning("⚠️ GEMINI_API_KEY not found. Generation requests will be rejected.")

        self.clients = {"gemini_client": gemini_client}

    def get_clients(self) -> Dict[str, Any]:
        """Get all configured clients."""
        return self.clients

    def get_client_summary(self) -> Dict[str, str]:
        """Get a summary of client configuration status."""
        return {
            name: "✅ Configured" if client is not None else "❌ Not configured"
            for name, client in self.clients.items()
        }

    def masked_api_key(self) -> str:
        if not self.gemini_api_key:
            return "NOT SET"
        return f"{self.gemini_api_key[:10]}..."


# Global client configuration instance
_client_config = None


def get_client_config(env_path: Optional[str] = None) -> ClientConfig:
    """Get or create the global client configuration instance."""
    global _client_config
    if _client_config is None:
        _client_config = ClientConfig(env_path)
    return _client_config


def reset_client_config() -> None:
    """Drop the cached configuration (used when the environment changes, e.g. in tests)."""
    global _client_config
    _client_config = None
