"""
networks.py

Static presets for the storage networks the sentinel can exercise.

Presets are plain frozen dataclasses. Environment overrides are applied by
env.py through dataclasses.replace(), never by mutating these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChainEndpoints:
    id: int
    name: str
    evm_rpc_url: str
    substrate_ws_url: str
    filesystem_precompile_address: str = "0x0000000000000000000000000000000000000404"


@dataclass(frozen=True)
class MspEndpoints:
    base_url: str
    timeout_sec: float
    siwe_domain: str
    siwe_uri: str


@dataclass(frozen=True)
class NetworkDelays:
    # Seconds
    post_storage_request: float = 10.0
    before_upload: float = 15.0
    before_bucket_delete: float = 5.0


@dataclass(frozen=True)
class NetworkConfig:
    key: str
    name: str
    chain: ChainEndpoints
    msp: MspEndpoints
    delays: NetworkDelays = field(default_factory=NetworkDelays)

    # Stagenet does not run enough backup providers for replicas=2
    max_replication: int = 2


STAGENET = NetworkConfig(
    key="stagenet",
    name="DataHaven Stagenet",
    chain=ChainEndpoints(
        id=55932,
        name="DataHaven Stagenet",
        evm_rpc_url="https://services.datahaven-dev.network/stagenet",
        substrate_ws_url="wss://services.datahaven-dev.network/stagenet",
    ),
    msp=MspEndpoints(
        base_url="https://deo-dh-backend.stagenet.datahaven-infra.network",
        timeout_sec=60.0,
        siwe_domain="deo-dh-backend.stagenet.datahaven-infra.network",
        siwe_uri="https://deo-dh-backend.stagenet.datahaven-infra.network",
    ),
    max_replication=1,
)

TESTNET = NetworkConfig(
    key="testnet",
    name="DataHaven Testnet",
    chain=ChainEndpoints(
        id=55931,
        name="DataHaven Testnet",
        evm_rpc_url="https://services.datahaven-testnet.network/testnet",
        substrate_ws_url="wss://services.datahaven-testnet.network/testnet",
    ),
    msp=MspEndpoints(
        base_url="https://deo-dh-backend.testnet.datahaven-infra.network",
        timeout_sec=30.0,
        siwe_domain="deo-dh-backend.testnet.datahaven-infra.network",
        siwe_uri="https://deo-dh-backend.testnet.datahaven-infra.network",
    ),
    max_replication=2,
)

NETWORKS: dict[str, NetworkConfig] = {
    STAGENET.key: STAGENET,
    TESTNET.key: TESTNET,
}


def get_network(key: str) -> NetworkConfig:
    name = (key or "").strip().lower()
    if name not in NETWORKS:
        raise ValueError(f"Unknown network: {key} (expected one of {', '.join(NETWORKS)})")
    return NETWORKS[name]
