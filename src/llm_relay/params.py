"""
Provider configuration normalization for llm-relay.

Contract
- A provider record carries a free-form `configuration` JSON object.
- Standard keys are understood by every chat adapter:
  model: str
  temperature: float
  max_tokens: int
  top_p: float
  top_k: int
  stop: str | list[str]

- Everything else is provider specific and is moved under `extra`, which
  adapters forward into the request body unchanged. Examples:
    extra.size: "1024x1024"          (image providers)
    extra.quality: "hd"              (DALL-E)
    extra.output_format: "webp"      (Stability)

Unknown top-level keys are moved into extra.
A caller-supplied `extra` object is merged last and wins.
"""

from __future__ import annotations

from typing import Any, Mapping

from llm_relay.errors import ConfigurationError

STANDARD_KEYS = {
    "model",
    "temperature",
    "max_tokens",
    "top_p",
    "top_k",
    "stop",
}


def normalize_config(config: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Normalize a provider configuration into standard keys plus `extra`.

    None values are dropped so adapter defaults apply.

    Example
    -------
    >>> normalize_config({"model": "gpt-4o", "temperature": 0.2, "seed": 7})
    {'model': 'gpt-4o', 'temperature': 0.2, 'extra': {'seed': 7}}
    """
    if config is None:
        return {"extra": {}}
    if not isinstance(config, Mapping):
        raise ConfigurationError(
            f"configuration must be an object, got {type(config).__name__}"
        )

    user_extra = config.get("extra") or {}
    if not isinstance(user_extra, Mapping):
        raise ConfigurationError("configuration['extra'] must be an object")

    std: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in config.items():
        if key == "extra" or value is None:
            continue
        if key in STANDARD_KEYS:
            std[key] = value
        else:
            extra[key] = value

    std["extra"] = {**extra, **{k: v for k, v in user_extra.items() if v is not None}}
    return std


def merge_config(defaults: Mapping[str, Any] | None, overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Layer `overrides` on top of `defaults`, then normalize.

    Top-level keys are overwritten; `extra` is merged per key.
    """
    base = normalize_config(defaults)
    over = normalize_config(overrides)
    merged_extra = {**base.pop("extra"), **over.pop("extra")}
    return {**base, **over, "extra": merged_extra}


def require(config: Mapping[str, Any], key: str, provider: str) -> Any:
    """Return `config[key]` or fail with a ConfigurationError naming the provider."""
    value = config.get(key)
    if value is None or value == "":
        raise ConfigurationError(f"{provider}: '{key}' is required in configuration")
    return value
