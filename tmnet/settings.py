"""
Network Settings

Loads the user's network settings file (net.json / net.toml / net.yaml) and
overlays it on the built-in defaults. Keys follow the settings-file naming:

    tm-version      Tendermint release used to generate the testnet
    pex             Enable the peer-exchange reactor
    nodes           Node addresses, one per generated node
    p2p-port        P2P listen port
    rpc-port        RPC listen port
    proxy-port      ABCI application port
    logging-port    Prometheus listen port
    mempool-size    Mempool capacity (transactions)
    tx-cache-size   Mempool transaction cache size
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml
import yaml

from tmnet.errors import SettingsError

logger = logging.getLogger(__name__)

VERSION_KEY = 'tm-version'
PEX_KEY = 'pex'
NODES_KEY = 'nodes'
P2P_PORT_KEY = 'p2p-port'
RPC_PORT_KEY = 'rpc-port'
PROXY_PORT_KEY = 'proxy-port'
LOGGING_PORT_KEY = 'logging-port'
MEMPOOL_SIZE_KEY = 'mempool-size'
TX_CACHE_SIZE_KEY = 'tx-cache-size'

DEFAULTS = {
    VERSION_KEY: '0.26.0',
    PEX_KEY: False,
    NODES_KEY: ['192.168.0.1', '192.168.0.2', '192.168.0.3'],
    P2P_PORT_KEY: 26656,
    RPC_PORT_KEY: 26657,
    PROXY_PORT_KEY: 26658,
    LOGGING_PORT_KEY: 26660,
    MEMPOOL_SIZE_KEY: 5000,
    TX_CACHE_SIZE_KEY: 10000,
}

# Alternate spellings accepted in settings files
KEY_ALIASES = {
    'version': VERSION_KEY,
    'pex-enabled': PEX_KEY,
}

SETTINGS_NAME = 'net'
SETTINGS_EXTENSIONS = ('.json', '.toml', '.yaml', '.yml')

_TRUE_STRINGS = ('true', '1', 'yes', 'on')
_FALSE_STRINGS = ('false', '0', 'no', 'off')


def default_settings() -> Dict[str, Any]:
    """Return a fresh copy of the default raw settings"""
    raw = dict(DEFAULTS)
    raw[NODES_KEY] = list(DEFAULTS[NODES_KEY])
    return raw


def find_settings_file(directory: Union[str, Path] = '.', name: str = SETTINGS_NAME) -> Path:
    """
    Locate the settings file in a directory.

    Args:
        directory: Directory to search
        name: Base file name without extension

    Returns:
        Path of the first existing candidate, tried in SETTINGS_EXTENSIONS order
    """
    directory = Path(directory)
    for ext in SETTINGS_EXTENSIONS:
        candidate = directory / f"{name}{ext}"
        if candidate.is_file():
            return candidate

    tried = ', '.join(f"{name}{ext}" for ext in SETTINGS_EXTENSIONS)
    raise SettingsError(f"cannot find settings file in {directory} (tried {tried})")


def _parse(path: Path, text: str) -> Any:
    suffix = path.suffix.lower()
    if suffix == '.json':
        return json.loads(text)
    if suffix == '.toml':
        return toml.loads(text)
    if suffix in ('.yaml', '.yml'):
        return yaml.safe_load(text)
    raise SettingsError(f"unsupported settings file type: {path.name}")


def read_settings_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a settings file and normalize its keys.

    Keys are lowercased and aliases resolved; unknown keys are dropped
    with a warning.

    Args:
        path: JSON, TOML or YAML settings file

    Returns:
        Dict of recognized settings keys present in the file
    """
    path = Path(path)
    logger.info(f"reading '{path.name}' settings file")

    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise SettingsError(f"cannot load '{path}' file: {e}") from e
    except UnicodeDecodeError as e:
        raise SettingsError(f"cannot parse '{path}' file: not valid UTF-8 ({e})") from e

    try:
        data = _parse(path, text)
    except (json.JSONDecodeError, toml.TomlDecodeError, yaml.YAMLError) as e:
        raise SettingsError(f"cannot parse '{path}' file: {e}") from e

    # An empty YAML document loads as None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SettingsError(f"'{path}' must contain a mapping, got {type(data).__name__}")

    overrides = {}
    for key, value in data.items():
        norm = str(key).strip().lower()
        norm = KEY_ALIASES.get(norm, norm)
        if norm not in DEFAULTS:
            logger.warning(f"ignoring unknown settings key '{key}' in {path.name}")
            continue
        overrides[norm] = value

    return overrides


def merge_settings(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Return defaults overridden by exactly the keys present in overrides"""
    merged = dict(defaults)
    merged.update(overrides)
    return merged


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise SettingsError(f"'{key}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise SettingsError(f"'{key}' must be an integer, got {value!r}")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise SettingsError(f"'{key}' must be a boolean, got {value!r}")


def _as_string_list(key: str, value: Any) -> List[str]:
    if isinstance(value, str):
        return [item for item in re.split(r'[,\s]+', value) if item]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    raise SettingsError(f"'{key}' must be a list of addresses, got {value!r}")


def _check_port(key: str, port: int) -> int:
    if not 1 <= port <= 65535:
        raise SettingsError(f"'{key}' must be between 1 and 65535, got {port}")
    return port


def _check_size(key: str, size: int) -> int:
    if size < 0:
        raise SettingsError(f"'{key}' must not be negative, got {size}")
    return size


@dataclass
class NetworkSettings:
    """Effective settings for one configurator run"""
    tm_version: str = DEFAULTS[VERSION_KEY]
    pex_enabled: bool = DEFAULTS[PEX_KEY]
    nodes: List[str] = field(default_factory=lambda: list(DEFAULTS[NODES_KEY]))
    p2p_port: int = DEFAULTS[P2P_PORT_KEY]
    rpc_port: int = DEFAULTS[RPC_PORT_KEY]
    proxy_port: int = DEFAULTS[PROXY_PORT_KEY]
    logging_port: int = DEFAULTS[LOGGING_PORT_KEY]
    mempool_size: int = DEFAULTS[MEMPOOL_SIZE_KEY]
    tx_cache_size: int = DEFAULTS[TX_CACHE_SIZE_KEY]

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> 'NetworkSettings':
        """
        Build settings from a raw key/value mapping, coercing loose values.

        Args:
            raw: Mapping keyed by settings-file keys (missing keys use defaults)

        Returns:
            Validated NetworkSettings
        """
        raw = merge_settings(default_settings(), raw)

        version = str(raw[VERSION_KEY]).strip()
        if not version:
            raise SettingsError(f"'{VERSION_KEY}' must not be empty")

        nodes = _as_string_list(NODES_KEY, raw[NODES_KEY])
        if not nodes:
            raise SettingsError(f"'{NODES_KEY}' must list at least one node address")

        return cls(
            tm_version=version,
            pex_enabled=_as_bool(PEX_KEY, raw[PEX_KEY]),
            nodes=nodes,
            p2p_port=_check_port(P2P_PORT_KEY, _as_int(P2P_PORT_KEY, raw[P2P_PORT_KEY])),
            rpc_port=_check_port(RPC_PORT_KEY, _as_int(RPC_PORT_KEY, raw[RPC_PORT_KEY])),
            proxy_port=_check_port(PROXY_PORT_KEY, _as_int(PROXY_PORT_KEY, raw[PROXY_PORT_KEY])),
            logging_port=_check_port(LOGGING_PORT_KEY, _as_int(LOGGING_PORT_KEY, raw[LOGGING_PORT_KEY])),
            mempool_size=_check_size(MEMPOOL_SIZE_KEY, _as_int(MEMPOOL_SIZE_KEY, raw[MEMPOOL_SIZE_KEY])),
            tx_cache_size=_check_size(TX_CACHE_SIZE_KEY, _as_int(TX_CACHE_SIZE_KEY, raw[TX_CACHE_SIZE_KEY])),
        )

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def report(self):
        """Log the effective settings"""
        logger.info(f">> tendermint-version: {self.tm_version}")
        logger.info(f">> nodes: {self.nodes}")
        logger.info(f">> nodes-total: {self.node_count}")
        logger.info(f">> pex-enabled: {str(self.pex_enabled).lower()}")
        logger.info(f">> p2p-port: {self.p2p_port}")
        logger.info(f">> rpc-port: {self.rpc_port}")
        logger.info(f">> proxy-port: {self.proxy_port}")
        logger.info(f">> logging-port: {self.logging_port}")
        logger.info(f">> tx-cache-size: {self.tx_cache_size}")
        logger.info(f">> mempool-size: {self.mempool_size}")


def load_settings(path: Optional[Union[str, Path]] = None,
                  directory: Union[str, Path] = '.') -> NetworkSettings:
    """
    Load effective settings: defaults overlaid with the user settings file.

    Args:
        path: Explicit settings file; searched for in directory when omitted
        directory: Directory searched for net.{json,toml,yaml,yml}

    Returns:
        Validated NetworkSettings
    """
    if path is None:
        path = find_settings_file(directory)
    overrides = read_settings_file(path)
    return NetworkSettings.from_mapping(merge_settings(default_settings(), overrides))
