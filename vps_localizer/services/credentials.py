import os
from typing import Optional


class StaticTokenProvider:
    """Hands out a bearer token obtained elsewhere."""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    def get_token(self) -> Optional[str]:
        return self.token or None


class EnvTokenProvider:
    def __init__(self, var: str = "VPS_TOKEN"):
        self.var = var

    def get_token(self) -> Optional[str]:
        return os.getenv(self.var) or None
