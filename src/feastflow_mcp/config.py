import json
import os
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    base_url: str = "http://localhost:5000"
    prefix: str = "/api"
    timeout_seconds: float = 15.0


class StorageConfig(BaseModel):
    state_path: str = "/tmp/feastflow_state.json"


class PushConfig(BaseModel):
    url: Optional[str] = None  # defaults to api.base_url
    event: str = "orderStatusUpdated"
    transports: list[str] = Field(default_factory=lambda: ["websocket"])


class CheckoutConfig(BaseModel):
    payment_delay_seconds: float = 2.0  # simulated UPI redirect
    audit_log_path: str = "/data/orders.log"
    currency_symbol: str = "$"
    gst_rate: Decimal = Decimal("0.05")


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


class StorefrontConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @property
    def push_url(self) -> str:
        return self.push.url or self.api.base_url


def load_config(path: Optional[str] = None) -> StorefrontConfig:
    config_path = path or os.environ.get("CONFIG_PATH", "/config/config.json")
    if not os.path.exists(config_path):
        raise FileNotFoundError(
            f"Config file not found at {config_path}. "
            "Copy config.json.example to the config path and adjust the API URL."
        )
    with open(config_path) as f:
        data = json.load(f)
    return StorefrontConfig(**data)
