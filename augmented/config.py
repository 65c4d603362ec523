"""
Environment configuration and pool configurations.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .constants import DEFAULT_POOL_NAME, ZERO_ADDRESS
from .errors import ConfigurationError

# Load environment variables
load_dotenv()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class Settings:
    """Runtime settings read from the environment"""
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    network: str = "localhost"
    deployment_db: str = "deployed-contracts.json"
    artifacts_dir: str = "artifacts"
    provider_registry: Optional[str] = None
    log_file: Optional[str] = None
    log_level: str = "INFO"
    mainnet_fork: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            rpc_url=os.getenv("RPC_URL", "http://localhost:8545"),
            private_key=os.getenv("PRIVATE_KEY") or None,
            network=os.getenv("NETWORK", "localhost"),
            deployment_db=os.getenv("DEPLOYMENT_DB", "deployed-contracts.json"),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
            provider_registry=os.getenv("PROVIDER_REGISTRY") or None,
            log_file=os.getenv("LOG_FILE") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            mainnet_fork=os.getenv("MAINNET_FORK", "false").lower() == "true",
        )


@dataclass
class PoolConfiguration:
    """Per-network addresses of a market that are not in the deployment database"""
    name: str
    provider_registry: Dict[str, str] = field(default_factory=dict)

    def provider_registry_for(self, network: str) -> str:
        return self.provider_registry.get(network, ZERO_ADDRESS)


POOL_CONFIGS: Dict[str, PoolConfiguration] = {
    DEFAULT_POOL_NAME: PoolConfiguration(name=DEFAULT_POOL_NAME),
}


def load_pool_config(name: str, settings: Optional[Settings] = None) -> PoolConfiguration:
    """
    Return the pool configuration by name.

    A PROVIDER_REGISTRY setting overrides the registry address for the
    configured network.
    """
    try:
        config = POOL_CONFIGS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown pool configuration: {name}") from None

    if settings is not None and settings.provider_registry:
        registries = dict(config.provider_registry)
        registries[settings.network] = settings.provider_registry
        config = PoolConfiguration(name=config.name, provider_registry=registries)
    return config


def setup_logging(settings: Settings) -> None:
    """Configure root logging for command line runs"""
    handlers: list = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
