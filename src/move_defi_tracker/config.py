"""Network endpoints and scanner settings."""

import os
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

DEFAULT_NETWORK = "mainnet"


class NetworkConfig(BaseModel):
    """
    Endpoints of a Movement network.

    Attributes
    ----------
    name : str
        Network name
    rpc : str
        Fullnode REST API base URL
    explorer : str
        Block explorer URL
    indexer : str
        GraphQL indexer URL

    """

    model_config = ConfigDict(frozen=True)

    name: str
    rpc: str
    explorer: str
    indexer: str

    def account_url(self, address: str) -> str:
        return f"{self.explorer}/account/{address}?network={self.name}"


NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(
        name="mainnet",
        rpc="https://mainnet.movementnetwork.xyz/v1",
        explorer="https://explorer.movementnetwork.xyz",
        indexer="https://indexer.mainnet.movementnetwork.xyz/v1/graphql",
    ),
    "testnet": NetworkConfig(
        name="testnet",
        rpc="https://testnet.movementnetwork.xyz/v1",
        explorer="https://explorer-testnet.movementnetwork.xyz",
        indexer="https://hasura.testnet.movementnetwork.xyz/v1/graphql",
    ),
}


def get_network(name: str | None = None) -> NetworkConfig:
    """
    Resolve the network to talk to.

    Parameters
    ----------
    name : str | None
        Network name. Falls back to MOVEMENT_NETWORK, then mainnet.

    Returns
    -------
    NetworkConfig
        Network endpoints, with the RPC URL replaced by MOVEMENT_RPC_URL when set

    Raises
    ------
    ValueError
        If the network name is unknown

    """
    name = (name or os.getenv("MOVEMENT_NETWORK") or DEFAULT_NETWORK).lower()
    if name not in NETWORKS:
        msg = f"Unknown network '{name}'. Available: {', '.join(NETWORKS)}"
        raise ValueError(msg)

    network = NETWORKS[name]
    rpc_override = os.getenv("MOVEMENT_RPC_URL")
    if rpc_override:
        network = network.model_copy(update={"rpc": rpc_override})
    return network


class ScannerSettings(BaseModel):
    """
    Tunables of a position scan.

    Attributes
    ----------
    max_depth : int
        Extraction depth bound for generic resources
    default_decimals : int
        Decimals assumed for generically extracted amounts
    dust_threshold : Decimal
        Smallest generic or receipt token amount reported
    adapter_dust_threshold : Decimal
        Smallest adapter amount reported
    max_concurrent_views : int
        View calls in flight per handler
    request_timeout : float
        Ledger request timeout in seconds

    """

    model_config = ConfigDict(frozen=True)

    max_depth: int = 6
    default_decimals: int = 8
    dust_threshold: Decimal = Decimal("0.001")
    adapter_dust_threshold: Decimal = Decimal("0.0001")
    max_concurrent_views: int = 8
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "ScannerSettings":
        """Build settings, applying MOVEMENT_SCAN_<FIELD> overrides from the environment."""
        overrides = {}
        for field in cls.model_fields:
            value = os.getenv(f"MOVEMENT_SCAN_{field.upper()}")
            if value is not None:
                overrides[field] = value
        return cls.model_validate(overrides)
