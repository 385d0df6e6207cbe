"""
Supabase access for execution history.

Only the server writes here, with the service role key from
ExecutionConfig. The client is created on first use and shared by the
whole process.
"""
from typing import Optional

from supabase import Client, create_client

from canvasai.config import ExecutionConfig


class SupabaseClient:
    """Process-wide Supabase connection."""

    _instance: Optional["SupabaseClient"] = None
    _client: Optional[Client] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._client is not None:
            return

        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", ExecutionConfig.SUPABASE_URL),
                ("SUPABASE_SERVICE_ROLE_KEY", ExecutionConfig.SUPABASE_SERVICE_ROLE_KEY),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Execution history needs {', '.join(missing)} to be set")

        try:
            self._client = create_client(
                ExecutionConfig.SUPABASE_URL, ExecutionConfig.SUPABASE_SERVICE_ROLE_KEY
            )
        except Exception as e:
            raise ValueError(f"Failed to create Supabase client: {str(e)}")

    @property
    def client(self) -> Client:
        if self._client is None:
            raise RuntimeError("Supabase client not initialized")
        return self._client


def get_supabase() -> SupabaseClient:
    return SupabaseClient()
