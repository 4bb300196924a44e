"""
Chain adapter resolution.

The chain client and content addresser are supplied by an adapter package
outside this repo. SENTINEL_CHAIN_ADAPTER names either a registered adapter
or an import path of the form "package.module:factory".
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Dict

from env import ConfigError, NetworkConfig
from providers.base import ChainClient, ContentAddresser


@dataclass(frozen=True)
class ChainBindings:
    chain: ChainClient
    addresser: ContentAddresser


ChainAdapterFactory = Callable[[NetworkConfig, str], ChainBindings]

_ADAPTERS: Dict[str, ChainAdapterFactory] = {}


def register_chain_adapter(name: str, factory: ChainAdapterFactory) -> None:
    """
    Extension hook for adapter packages. An adapter registers itself on
    import (typically from a sitecustomize or a wrapper entrypoint), after
    which SENTINEL_CHAIN_ADAPTER can name it instead of an import path.
    Nothing in this package registers an adapter.
    """
    _ADAPTERS[name.strip().lower()] = factory


def registered_adapters() -> list[str]:
    return sorted(_ADAPTERS)


def _import_factory(path: str) -> ChainAdapterFactory:
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import chain adapter module {module_name!r}: {e}") from e

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"Chain adapter {path!r} is not a callable factory")
    return factory


def get_chain_adapter(spec: str) -> ChainAdapterFactory:
    key = (spec or "").strip()
    if not key:
        raise ConfigError(
            "No chain adapter configured. Set SENTINEL_CHAIN_ADAPTER to a registered "
            "name or a 'module:factory' import path."
        )

    if ":" in key:
        return _import_factory(key)

    factory = _ADAPTERS.get(key.lower())
    if factory is None:
        known = ", ".join(registered_adapters()) or "none registered"
        raise ConfigError(f"Unknown chain adapter: {spec} ({known})")
    return factory


def build_chain(spec: str, network: NetworkConfig, private_key: str) -> ChainBindings:
    bindings = get_chain_adapter(spec)(network, private_key)
    if not isinstance(bindings, ChainBindings):
        raise ConfigError(f"Chain adapter {spec!r} did not return ChainBindings")
    return bindings
