"""
Tendermint Test Network Configurator

Contains the modules used to bootstrap a local multi-node testnet:
- settings: Network settings defaults and settings-file loading
- generator: Wrapper around the external `tendermint testnet` generator
- node_config: Per-node config.toml patching (peers, ports, moniker)
- configurator: Pipeline orchestration and command line entry point
"""

__all__ = ['errors', 'settings', 'generator', 'node_config', 'configurator']
