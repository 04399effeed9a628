#!/usr/bin/env python3
"""
Test Network Settings Loading

Validates default merging, settings file discovery across formats and the
loose value coercion applied to user settings.
"""

import json
import logging

import pytest

from tmnet.errors import SettingsError
from tmnet.settings import (
    NetworkSettings,
    default_settings,
    find_settings_file,
    load_settings,
    merge_settings,
    read_settings_file,
)


def test_defaults():
    """No overrides yields the built-in defaults"""
    settings = NetworkSettings.from_mapping({})

    assert settings == NetworkSettings()
    assert settings.tm_version == '0.26.0'
    assert settings.pex_enabled is False
    assert settings.nodes == ['192.168.0.1', '192.168.0.2', '192.168.0.3']
    assert settings.node_count == 3
    assert (settings.p2p_port, settings.rpc_port, settings.proxy_port, settings.logging_port) == \
        (26656, 26657, 26658, 26660)
    assert settings.mempool_size == 5000
    assert settings.tx_cache_size == 10000


def test_file_keys_override_exactly(tmp_path):
    """Merged settings equal defaults overridden by exactly the file's keys"""
    overrides = {'nodes': ['10.0.0.1', '10.0.0.2'], 'p2p-port': 36656, 'pex': True}
    (tmp_path / 'net.json').write_text(json.dumps(overrides))

    raw = read_settings_file(tmp_path / 'net.json')
    assert raw == overrides

    expected = default_settings()
    expected.update(overrides)
    assert merge_settings(default_settings(), raw) == expected

    settings = load_settings(directory=tmp_path)
    assert settings.nodes == ['10.0.0.1', '10.0.0.2']
    assert settings.p2p_port == 36656
    assert settings.pex_enabled is True
    # Untouched keys keep their defaults
    assert settings.rpc_port == 26657
    assert settings.mempool_size == 5000
    assert settings.tm_version == '0.26.0'


def test_merge_does_not_mutate_inputs():
    defaults = default_settings()
    overrides = {'rpc-port': 1234}

    merged = merge_settings(defaults, overrides)

    assert merged['rpc-port'] == 1234
    assert defaults['rpc-port'] == 26657
    assert overrides == {'rpc-port': 1234}


def test_default_settings_are_fresh_copies():
    first = default_settings()
    first['nodes'].append('10.9.9.9')
    assert default_settings()['nodes'] == ['192.168.0.1', '192.168.0.2', '192.168.0.3']


def test_find_settings_file_order(tmp_path):
    (tmp_path / 'net.yaml').write_text('pex: true\n')
    assert find_settings_file(tmp_path).name == 'net.yaml'

    (tmp_path / 'net.toml').write_text('pex = true\n')
    assert find_settings_file(tmp_path).name == 'net.toml'

    (tmp_path / 'net.json').write_text('{}')
    assert find_settings_file(tmp_path).name == 'net.json'


def test_missing_settings_file(tmp_path):
    with pytest.raises(SettingsError, match='cannot find settings file'):
        load_settings(directory=tmp_path)

    with pytest.raises(SettingsError, match='cannot load'):
        load_settings(tmp_path / 'absent.json')


def test_toml_settings(tmp_path):
    (tmp_path / 'net.toml').write_text(
        'tm-version = "0.27.4"\n'
        'nodes = ["172.16.0.10", "172.16.0.11", "172.16.0.12", "172.16.0.13"]\n'
        'mempool-size = 8000\n'
    )

    settings = load_settings(directory=tmp_path)

    assert settings.tm_version == '0.27.4'
    assert settings.node_count == 4
    assert settings.mempool_size == 8000


def test_yaml_settings(tmp_path):
    (tmp_path / 'net.yml').write_text(
        'tx-cache-size: 20000\n'
        'nodes:\n'
        '  - node-a.local\n'
        '  - node-b.local\n'
    )

    settings = load_settings(directory=tmp_path)

    assert settings.tx_cache_size == 20000
    assert settings.nodes == ['node-a.local', 'node-b.local']


def test_empty_yaml_uses_defaults(tmp_path):
    (tmp_path / 'net.yaml').write_text('')
    assert load_settings(directory=tmp_path) == NetworkSettings()


def test_aliases_and_key_case(tmp_path):
    (tmp_path / 'net.json').write_text(json.dumps({
        'Version': '0.30.0',
        'PEX-Enabled': 'true',
        'RPC-Port': 30000,
    }))

    settings = load_settings(directory=tmp_path)

    assert settings.tm_version == '0.30.0'
    assert settings.pex_enabled is True
    assert settings.rpc_port == 30000


def test_unknown_keys_are_ignored(tmp_path, caplog):
    (tmp_path / 'net.json').write_text(json.dumps({'chain-id': 'test', 'rpc-port': 30001}))

    with caplog.at_level(logging.WARNING, logger='tmnet.settings'):
        raw = read_settings_file(tmp_path / 'net.json')

    assert raw == {'rpc-port': 30001}
    assert "ignoring unknown settings key 'chain-id'" in caplog.text


def test_loose_value_coercion():
    settings = NetworkSettings.from_mapping({
        'p2p-port': '27000',
        'mempool-size': 6000.0,
        'pex': 'yes',
        'nodes': '10.0.0.1, 10.0.0.2 10.0.0.3',
        'tm-version': 26,
    })

    assert settings.p2p_port == 27000
    assert settings.mempool_size == 6000
    assert settings.pex_enabled is True
    assert settings.nodes == ['10.0.0.1', '10.0.0.2', '10.0.0.3']
    assert settings.tm_version == '26'


@pytest.mark.parametrize('raw, message', [
    ({'nodes': []}, 'at least one node'),
    ({'nodes': ''}, 'at least one node'),
    ({'nodes': 42}, 'list of addresses'),
    ({'p2p-port': 70000}, 'between 1 and 65535'),
    ({'rpc-port': 0}, 'between 1 and 65535'),
    ({'proxy-port': 'abc'}, 'must be an integer'),
    ({'logging-port': True}, 'must be an integer'),
    ({'mempool-size': -1}, 'must not be negative'),
    ({'pex': 'maybe'}, 'must be a boolean'),
    ({'pex': ''}, 'must be a boolean'),
    ({'tm-version': '  '}, 'must not be empty'),
])
def test_invalid_values(raw, message):
    with pytest.raises(SettingsError, match=message):
        NetworkSettings.from_mapping(raw)


def test_malformed_files(tmp_path):
    (tmp_path / 'net.json').write_text('{"nodes": [')
    with pytest.raises(SettingsError, match='cannot parse'):
        read_settings_file(tmp_path / 'net.json')

    (tmp_path / 'list.yaml').write_text('- 10.0.0.1\n- 10.0.0.2\n')
    with pytest.raises(SettingsError, match='must contain a mapping'):
        read_settings_file(tmp_path / 'list.yaml')

    (tmp_path / 'latin1.json').write_bytes(b'{"nodes": ["\xff\xfe"]}')
    with pytest.raises(SettingsError, match='not valid UTF-8'):
        read_settings_file(tmp_path / 'latin1.json')

    (tmp_path / 'net.ini').write_text('[net]\n')
    with pytest.raises(SettingsError, match='unsupported settings file type'):
        read_settings_file(tmp_path / 'net.ini')


def test_report(caplog):
    with caplog.at_level(logging.INFO, logger='tmnet.settings'):
        NetworkSettings().report()

    assert '>> tendermint-version: 0.26.0' in caplog.text
    assert '>> nodes-total: 3' in caplog.text
    assert '>> pex-enabled: false' in caplog.text
    assert '>> logging-port: 26660' in caplog.text
