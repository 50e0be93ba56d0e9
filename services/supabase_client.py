"""
Shared Supabase client.

Credentials come from the environment (or the project-root .env):
  SUPABASE_URL
  SUPABASE_SERVICE_ROLE_KEY  (SUPABASE_KEY is accepted as a fallback)

The client is created lazily so that importing this module never needs
credentials; call get_supabase() at the point of use.
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv
from supabase import Client, create_client

# Ensure .env is loaded from the project root (one level above /services)
env_path = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(env_path)

_client = None


def validate_env_for_supabase():
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")

    missing = []
    if not url:
        missing.append("SUPABASE_URL")
    if not key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if missing:
        raise EnvironmentError(f"Missing Supabase environment variables: {', '.join(missing)}")

    return url, key


def get_supabase() -> Client:
    global _client

    if _client is None:
        url, key = validate_env_for_supabase()
        _client = create_client(url, key)
        logging.info("[supabase] Client created for %s", url)

    return _client
