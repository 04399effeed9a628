"""
Node Config Patching

Rewrites each generated node's config/config.toml with the network's real
addresses and ports. The generator fills persistent_peers with placeholder
addresses counted up from its starting IP on its own default P2P port; those
are swapped for the configured node addresses.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Union

import toml

from tmnet.errors import NodeConfigError
from tmnet.generator import node_dir_name
from tmnet.settings import NetworkSettings

logger = logging.getLogger(__name__)

CONFIG_RELPATH = Path('config') / 'config.toml'

GENERATOR_P2P_PORT = 26656

# 192.168.0.<k>:26656 where k is the 1-based node number. The lookbehind keeps
# addresses such as 10.192.168.0.1 from matching.
GENERATOR_PEER_PATTERN = re.compile(
    r'(?<![\d.])192\.168\.0\.(\d{1,3}):' + str(GENERATOR_P2P_PORT) + r'(?!\d)'
)


def rewrite_peers(peers: str, nodes: List[str], p2p_port: int) -> str:
    """
    Replace generator placeholder addresses in a persistent_peers string.

    Substitution is a single pass, so every placeholder is replaced at most
    once and replacement text is never rescanned.

    Args:
        peers: Comma separated id@host:port list written by the generator
        nodes: Real node addresses, indexed from 0
        p2p_port: Real P2P port

    Returns:
        Rewritten peer list
    """
    def substitute(match):
        index = int(match.group(1)) - 1
        if 0 <= index < len(nodes):
            return f"{nodes[index]}:{p2p_port}"
        return match.group(0)

    return GENERATOR_PEER_PATTERN.sub(substitute, peers)


class NodeConfig:
    """One node's config.toml, loaded for in-place editing"""

    def __init__(self, index: int, path: Path, data: Dict[str, Any]):
        self.index = index
        self.path = path
        self.data = data

    @property
    def moniker(self) -> str:
        return node_dir_name(self.index)

    @classmethod
    def load(cls, output_dir: Union[str, Path], index: int) -> 'NodeConfig':
        path = Path(output_dir) / node_dir_name(index) / CONFIG_RELPATH
        logger.info(f"reading {node_dir_name(index)} 'config.toml' file")
        try:
            data = toml.load(str(path))
        except (OSError, UnicodeDecodeError, toml.TomlDecodeError) as e:
            raise NodeConfigError(
                f"cannot load {node_dir_name(index)} 'config.toml' file: {e}"
            ) from e
        logger.debug(f"{node_dir_name(index)} config keys: {sorted(data)}")
        return cls(index, path, data)

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.data.get(name)
        if section is None:
            section = self.data[name] = {}
        elif not isinstance(section, dict):
            raise NodeConfigError(f"{self.path}: '{name}' is not a table")
        return section

    def apply(self, settings: NetworkSettings):
        """Set network-specific values from settings"""
        p2p = self._section('p2p')
        peers = rewrite_peers(p2p.get('persistent_peers', ''), settings.nodes, settings.p2p_port)
        logger.info(f"{self.moniker} persistent peers: {peers}")

        self.data['moniker'] = self.moniker
        self.data['proxy_app'] = f"tcp://127.0.0.1:{settings.proxy_port}"

        p2p['laddr'] = f"tcp://0.0.0.0:{settings.p2p_port}"
        p2p['persistent_peers'] = peers
        p2p['pex'] = settings.pex_enabled

        mempool = self._section('mempool')
        mempool['size'] = settings.mempool_size
        mempool['cache_size'] = settings.tx_cache_size

        self._section('instrumentation')['prometheus_listen_addr'] = f":{settings.logging_port}"
        self._section('rpc')['laddr'] = f"tcp://0.0.0.0:{settings.rpc_port}"

    def save(self):
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                toml.dump(self.data, f)
        except OSError as e:
            raise NodeConfigError(f"cannot write {self.path}: {e}") from e


def patch_node_configs(settings: NetworkSettings, output_dir: Union[str, Path]) -> List[Path]:
    """
    Patch every generated node config in index order.

    Args:
        settings: Effective network settings
        output_dir: Generator output directory holding node0 .. nodeN-1

    Returns:
        Paths of the rewritten config files
    """
    logger.info("read tendermint generated config files")
    patched = []
    for index in range(settings.node_count):
        node = NodeConfig.load(output_dir, index)
        node.apply(settings)
        node.save()
        patched.append(node.path)
        logger.info(f"updated tendermint generated config for {node.moniker} with custom properties")
    return patched
