from .base import ProviderAdapter
from .config import provider_config_from_settings, read_provider_config
from .factory import build_provider_adapter

__all__ = [
    "ProviderAdapter",
    "build_provider_adapter",
    "provider_config_from_settings",
    "read_provider_config",
]
