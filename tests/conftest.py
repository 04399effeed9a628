"""
Shared fixtures: a fake `tendermint testnet` that lays out node directories
the way the real generator does, without needing the binary.
"""

import subprocess
from pathlib import Path

import pytest


GENERATED_CONFIG = '''\
proxy_app = "tcp://127.0.0.1:26658"
moniker = "{moniker}"
fast_sync = true
db_backend = "leveldb"

[rpc]
laddr = "tcp://0.0.0.0:26657"
max_open_connections = 900

[p2p]
laddr = "tcp://0.0.0.0:26656"
persistent_peers = "{peers}"
addr_book_strict = false
pex = true

[mempool]
recheck = true
size = 5000
cache_size = 10000

[instrumentation]
prometheus = false
prometheus_listen_addr = ":26660"
'''


def node_id(index):
    return f"{index:02d}" * 20


def generated_peers(count):
    return ','.join(f"{node_id(j)}@192.168.0.{j + 1}:26656" for j in range(count))


def write_generated_network(output_dir, count):
    """Write node0 .. node{count-1} the way `tendermint testnet` lays them out"""
    output_dir = Path(output_dir)
    peers = generated_peers(count)
    for i in range(count):
        config_dir = output_dir / f"node{i}" / 'config'
        config_dir.mkdir(parents=True)
        (config_dir / 'config.toml').write_text(
            GENERATED_CONFIG.format(moniker=f"generated-{i}", peers=peers)
        )
    return output_dir


def install_binary(tendermint_dir, version='0.26.0', script='#!/bin/sh\nexit 0\n'):
    binary = Path(tendermint_dir) / version / 'tendermint'
    binary.parent.mkdir(parents=True)
    binary.write_text(script)
    binary.chmod(0o755)
    return binary


class FakeGenerator:
    """Stand-in for subprocess.run that records calls and writes node dirs"""

    def __init__(self):
        self.calls = []
        self.output = None
        self.returncode = 0
        self.write_nodes = None

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        output_dir = cmd[cmd.index('--o') + 1]
        count = int(cmd[cmd.index('--v') + 1])
        if self.returncode == 0:
            write_generated_network(output_dir, count if self.write_nodes is None else self.write_nodes)
        output = self.output
        if output is None:
            output = f"Successfully initialized {count} node directories\n"
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=output)


@pytest.fixture
def fake_generator(monkeypatch):
    fake = FakeGenerator()
    monkeypatch.setattr(subprocess, 'run', fake)
    return fake
