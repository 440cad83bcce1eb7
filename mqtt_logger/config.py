from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Broker
    broker: str = "localhost"
    port: int = 1883
    transport: Literal["mqtt", "zmq"] = "mqtt"
    client_id: str = "mqtt-logger"
    keep_alive: int = Field(default=5, ge=1)
    clean_session: bool = False

    # Credentials
    username: Optional[str] = None
    password: Optional[str] = None

    # Queue depths and limits
    inflight: Optional[int] = Field(default=None, ge=1)
    channel_capacity: Optional[int] = Field(default=None, ge=1)
    max_packet_size: Optional[int] = Field(default=None, ge=1)

    # Topics
    topics: list[str] = Field(default_factory=list)
    topics_file: Optional[str] = None

    # Output
    log_dir: Path = Path(".")
    sync_writes: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # ZMQ tuning (basic)
    linger_ms: int = 0

    class Config:
        env_prefix = "MQTTLOG_"
        env_file = ".env"
        extra = "ignore"

    @model_validator(mode="after")
    def _check_credentials(self) -> "Settings":
        if (self.username is None) != (self.password is None):
            raise ValueError("username and password must be given together")
        return self
