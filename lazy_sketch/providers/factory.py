from __future__ import annotations

from collections.abc import Callable

from .base import ProviderAdapter
from .replicate import ReplicateAdapter
from .schema import ProviderConfig

AdapterBuilder = Callable[[ProviderConfig], ProviderAdapter]


def _build_replicate(config: ProviderConfig) -> ProviderAdapter:
    return ReplicateAdapter(
        base_url=config.base_url,
        api_token=config.api_token,
        timeout_sec=config.timeout_sec,
        model=config.model,
        lora_weights=config.lora_weights,
        poll_interval_sec=config.poll_interval_sec,
        max_poll_attempts=config.max_poll_attempts,
    )


_ADAPTER_BUILDERS: dict[str, AdapterBuilder] = {
    "replicate": _build_replicate,
}


def build_provider_adapter(config: ProviderConfig) -> ProviderAdapter:
    provider = config.provider.strip().lower()
    builder = _ADAPTER_BUILDERS.get(provider)
    if builder is not None:
        return builder(config)
    raise ValueError(f"Unsupported provider: {config.provider}")
