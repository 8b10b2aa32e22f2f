"""healthhub configuration system."""

from healthhub.config.loader import find_config_file, load_config, load_config_or_default
from healthhub.config.models import AuthConfig, HubConfig, PollerConfig, ServerConfig, ServiceEntry

__all__ = [
    "AuthConfig",
    "HubConfig",
    "PollerConfig",
    "ServerConfig",
    "ServiceEntry",
    "load_config",
    "load_config_or_default",
    "find_config_file",
]
