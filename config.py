"""
Runtime configuration

Values come from the environment (optionally seeded from a .env file). Build a
Settings once at process start and hand it to create_app().
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass
class Settings:
    api_prefix: str = "/api"
    public_client_key: Optional[str] = None
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    auth_timeout: float = 10.0
    database_url: Optional[str] = None
    database_name: str = "subsentry"
    kv_collection: str = "kv_store"
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        prefix = os.getenv("API_PREFIX", "/api").rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = "/" + prefix
        return cls(
            api_prefix=prefix,
            public_client_key=os.getenv("PUBLIC_CLIENT_KEY") or None,
            supabase_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            auth_timeout=float(os.getenv("AUTH_TIMEOUT", "10")),
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME", "subsentry"),
            kv_collection=os.getenv("KV_COLLECTION", "kv_store"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "8000")),
        )
