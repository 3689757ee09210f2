"""Global configuration for the Trip Map Planner application.

This module loads environment variables from .env file and provides
centralized configuration for the entire application.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env in the project root directory
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)


# ============================================================================
# Environment
# ============================================================================

# "development" swaps Google photo downloads for placeholder images
APP_ENV: str = os.getenv("APP_ENV", "production").lower()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def is_dev() -> bool:
    return APP_ENV in {"dev", "development"}


# ============================================================================
# Language Model Configuration
# ============================================================================

DEFAULT_MODEL_NAME: str = os.getenv("DEFAULT_MODEL_NAME", "gemini-2.0-flash")

# Tool-calling and planning replies
DEFAULT_TEMPERATURE: float = float(os.getenv("DEFAULT_TEMPERATURE", "0.7"))

# Narrative replies are allowed to be a little more creative
NARRATIVE_TEMPERATURE: float = float(os.getenv("NARRATIVE_TEMPERATURE", "0.8"))

# Upper bound on model → tool → model round trips in the suggestion agent
AGENT_MAX_TOOL_ITERATIONS: int = int(os.getenv("AGENT_MAX_TOOL_ITERATIONS", "5"))

# Concurrent place look-ups while enriching agent output
AGENT_MAX_CONCURRENCY: int = int(os.getenv("AGENT_MAX_CONCURRENCY", "3"))


# ============================================================================
# Places / Scoring Configuration
# ============================================================================

DEFAULT_SEARCH_RADIUS_M: int = int(os.getenv("DEFAULT_SEARCH_RADIUS_M", "2000"))
DEFAULT_RESULT_LIMIT: int = int(os.getenv("DEFAULT_RESULT_LIMIT", "10"))

# Places with fewer reviews are dropped from nearby searches
MIN_RATING_COUNT: int = int(os.getenv("MIN_RATING_COUNT", "10"))

DEFAULT_PHOTO_WIDTH: int = int(os.getenv("DEFAULT_PHOTO_WIDTH", "800"))
WIKIMEDIA_SEARCH_RADIUS_M: int = int(os.getenv("WIKIMEDIA_SEARCH_RADIUS_M", "100"))


# ============================================================================
# Cache Configuration
# ============================================================================

ATTRACTIONS_CACHE_CAPACITY: int = int(os.getenv("ATTRACTIONS_CACHE_CAPACITY", "100"))
ATTRACTIONS_CACHE_TTL_SECONDS: int = int(os.getenv("ATTRACTIONS_CACHE_TTL_SECONDS", str(30 * 60)))

RESTAURANTS_CACHE_CAPACITY: int = int(os.getenv("RESTAURANTS_CACHE_CAPACITY", "100"))
RESTAURANTS_CACHE_TTL_SECONDS: int = int(os.getenv("RESTAURANTS_CACHE_TTL_SECONDS", str(5 * 60)))

TEXT_SEARCH_CACHE_CAPACITY: int = int(os.getenv("TEXT_SEARCH_CACHE_CAPACITY", "200"))
TEXT_SEARCH_CACHE_TTL_SECONDS: int = int(os.getenv("TEXT_SEARCH_CACHE_TTL_SECONDS", str(60 * 60)))

PHOTO_CACHE_CAPACITY: int = int(os.getenv("PHOTO_CACHE_CAPACITY", "500"))
PHOTO_CACHE_TTL_SECONDS: int = int(os.getenv("PHOTO_CACHE_TTL_SECONDS", str(7 * 24 * 60 * 60)))


# ============================================================================
# Application Configuration
# ============================================================================

# FastAPI/Backend
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS Configuration
CORS_ORIGINS: List[str] = os.getenv("CORS_ORIGINS", "*").split(",") if os.getenv("CORS_ORIGINS") else ["*"]

# Authentication is handled upstream; requests without a user header fall back to this id
DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "local-dev-user")


# ============================================================================
# Storage Configuration
# ============================================================================

# Redis connection URL (e.g., redis://localhost:6379/0 or redis://:password@host:port/0)
REDIS_URL: Optional[str] = os.getenv("REDIS_URL")

# Conversation/trip record TTL in seconds (default: 90 days)
RECORD_TTL_SECONDS: int = int(os.getenv("RECORD_TTL_SECONDS", str(90 * 24 * 60 * 60)))


# ============================================================================
# AWS Configuration
# ============================================================================

AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

# AWS Secrets Manager secret name (optional, for storing API keys)
AWS_SECRETS_MANAGER_SECRET_NAME: Optional[str] = os.getenv("AWS_SECRETS_MANAGER_SECRET_NAME")


# ============================================================================
# AWS Secrets Manager Integration
# ============================================================================

def _get_secret_from_aws(secret_name: str, region: str = AWS_REGION) -> Optional[dict]:
    """Fetch secret from AWS Secrets Manager."""
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_name)
        return json.loads(response["SecretString"])
    except (BotoCoreError, ClientError) as e:
        logger.warning(f"Failed to fetch secret from AWS Secrets Manager: {e}")
        return None


def _get_api_key_with_fallback(env_var: str, secret_key: Optional[str] = None) -> Optional[str]:
    """Get API key from environment variable or AWS Secrets Manager."""
    value = os.getenv(env_var)
    if value:
        return value

    if AWS_SECRETS_MANAGER_SECRET_NAME and secret_key:
        secrets = _get_secret_from_aws(AWS_SECRETS_MANAGER_SECRET_NAME)
        if secrets and secret_key in secrets:
            return secrets[secret_key]

    return None


# ============================================================================
# API Keys (with AWS Secrets Manager support)
# ============================================================================

def get_google_api_key() -> Optional[str]:
    """Get Google API key (Gemini) - checks environment, then AWS Secrets Manager."""
    return (
        _get_api_key_with_fallback("GOOGLE_API_KEY", "GOOGLE_API_KEY")
        or _get_api_key_with_fallback("GEMINI_API_KEY", "GEMINI_API_KEY")
    )


def get_google_maps_api_key() -> Optional[str]:
    """Get Google Maps API key - checks environment, then AWS Secrets Manager."""
    return _get_api_key_with_fallback("GOOGLE_MAPS_API_KEY", "GOOGLE_MAPS_API_KEY")


# ============================================================================
# Validation
# ============================================================================

def validate_api_keys() -> List[str]:
    """Validate that required API keys are present. Returns list of missing keys."""
    missing = []

    if not get_google_maps_api_key():
        missing.append("GOOGLE_MAPS_API_KEY")

    if not get_google_api_key():
        missing.append("GOOGLE_API_KEY or GEMINI_API_KEY")

    return missing
