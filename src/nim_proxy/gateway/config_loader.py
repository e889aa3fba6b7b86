from __future__ import annotations

import logging
import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .config import GatewayConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "NIM_PROXY_CONFIG_FILE"
ENV_PREFIX = "NIM_PROXY_"
DEFAULT_CONFIG_PATH = Path("configs/nim_proxy.toml")

_SECTION_MAP: dict[str, list[str]] = {
    "server": ["host", "port"],
    "upstream": [
        "base_url",
        "default_api_key",
        "default_model",
        "upstream_timeout_s",
    ],
    "limits": ["max_body_bytes", "cors_origins"],
    "logging": ["request_log_path", "max_log_bytes"],
}

# Unprefixed names kept for hosting platforms that inject them directly.
_ENV_ALIASES: dict[str, list[str]] = {
    "host": ["NIM_PROXY_HOST"],
    "port": ["NIM_PROXY_PORT", "PORT"],
    "base_url": ["NIM_BASE_URL"],
    "default_api_key": ["NIM_API_KEY"],
    "default_model": ["NIM_PROXY_DEFAULT_MODEL"],
    "upstream_timeout_s": ["NIM_PROXY_UPSTREAM_TIMEOUT_S"],
    "max_body_bytes": ["NIM_PROXY_MAX_BODY_BYTES"],
    "cors_origins": ["NIM_PROXY_CORS_ORIGINS"],
    "request_log_path": ["NIM_PROXY_REQUEST_LOG_PATH"],
    "max_log_bytes": ["NIM_PROXY_MAX_LOG_BYTES"],
}

_SECRET_ENV = {"NIM_API_KEY"}


def _field_types() -> dict[str, Any]:
    return {f.name: f.type for f in fields(GatewayConfig)}


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value).strip())


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip())


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_list(value: Any) -> list[str]:
    if isinstance(value, str):
        parts = [item.strip() for item in value.split(",")]
        return [item for item in parts if item]
    return [str(item) for item in value]


# Field annotations are strings under ``from __future__ import annotations``.
_CASTERS: dict[str, Callable[[Any], Any]] = {
    "int": _coerce_int,
    "float": _coerce_float,
    "str": _coerce_str,
    "List[str]": _coerce_list,
}


def _coerce_value(field_type: Any, value: Any) -> Any:
    caster = _CASTERS.get(field_type if isinstance(field_type, str) else "")
    if caster is None:
        return value
    return caster(value)


def _config_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)

    out: dict[str, Any] = {}
    for section, keys in _SECTION_MAP.items():
        section_values = data.get(section, {})
        if not isinstance(section_values, dict):
            continue
        for key in keys:
            if key in section_values:
                out[key] = section_values[key]
    return out


def _env_values() -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, names in _ENV_ALIASES.items():
        for name in names:
            val = os.environ.get(name)
            if val is not None and val != "":
                out[key] = val
                break
    return out


def _default_config_dict() -> dict[str, Any]:
    data = asdict(GatewayConfig())
    data.pop("config_file_path", None)
    return data


def _normalize(config: dict[str, Any]) -> dict[str, Any]:
    field_types = _field_types()
    normalized = {}
    for key, default_value in _default_config_dict().items():
        value = config.get(key, default_value)
        try:
            normalized[key] = _coerce_value(field_types.get(key), value)
        except (TypeError, ValueError):
            logger.warning(
                "[config] Ignoring invalid value for %s: %r (using %r)",
                key,
                value,
                default_value,
            )
            normalized[key] = default_value
    return normalized


def load_file_config() -> dict[str, Any]:
    base = _default_config_dict()
    base.update(_read_config_file(_config_path()))
    return _normalize(base)


def load_gateway_config() -> GatewayConfig:
    """Resolve configuration: environment > config file > built-in defaults."""
    candidate = _config_path()
    merged = _default_config_dict()
    merged.update(_read_config_file(candidate))
    merged.update(_env_values())
    cfg = GatewayConfig(**_normalize(merged))
    cfg.config_file_path = str(candidate)
    return cfg


def list_env_overrides() -> dict[str, str]:
    recognized = {name for names in _ENV_ALIASES.values() for name in names}
    out: dict[str, str] = {}
    for key, value in os.environ.items():
        if key not in recognized and not key.startswith(ENV_PREFIX):
            continue
        out[key] = "***" if key in _SECRET_ENV and value else value
    return out
