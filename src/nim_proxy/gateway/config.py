from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_BASE_URL = "https://integrate.api.nvidia.com/v1"
DEFAULT_MODEL = "meta/llama-3.1-8b-instruct"


@dataclass
class GatewayConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    base_url: str = DEFAULT_BASE_URL
    # Caller-supplied credentials always win over this one.
    default_api_key: str = ""
    default_model: str = DEFAULT_MODEL
    upstream_timeout_s: float = 60.0
    max_body_bytes: int = 50 * 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    request_log_path: str = ""  # empty = JSONL request log disabled
    max_log_bytes: int = 25_000_000
    config_file_path: Optional[str] = None

    @property
    def chat_completions_url(self) -> str:
        return self.base_url.rstrip("/") + "/chat/completions"

    @property
    def models_url(self) -> str:
        return self.base_url.rstrip("/") + "/models"

    @classmethod
    def load(cls) -> "GatewayConfig":
        from .config_loader import load_gateway_config

        return load_gateway_config()
