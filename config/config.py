from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.graph.client import GraphClient
from core.graph.transport import HttpTransport, TransportConfig

__all__ = ["Settings", "get_settings", "build_client"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NEOREST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(default="http://localhost:7474/db/data", description="REST root of the graph service")
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1, description="attempts per GET request")

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            url=self.url,
            username=self.username,
            password=self.password,
            timeout=self.timeout,
            retry_attempts=self.retry_attempts,
        )

    def __repr__(self) -> str:
        password = "***" if self.password else None
        return (
            f"Settings(url={self.url!r}, username={self.username!r}, password={password!r}, "
            f"timeout={self.timeout!r}, retry_attempts={self.retry_attempts!r})"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def build_client(settings: Optional[Settings] = None) -> GraphClient:
    s = settings or get_settings()
    return GraphClient(HttpTransport(s.transport_config()))
