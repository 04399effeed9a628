"""
Testnet Generator

Runs the external `tendermint testnet` command that lays out one directory
per node (node0 .. nodeN-1) under the output directory, each with its own
config/config.toml, keys and genesis file.
"""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Union

from tmnet.errors import GeneratorError
from tmnet.settings import NetworkSettings

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = 'basenet'
DEFAULT_TENDERMINT_DIR = 'tendermint'

# First address handed out by the generator; later nodes count up from it
DEFAULT_STARTING_IP = '192.168.0.1'

SUCCESS_MARKER = 'Successfully'

NODE_DIR_PATTERN = re.compile(r'node\d+$')


def node_dir_name(index: int) -> str:
    return f"node{index}"


class TendermintGenerator:
    """Invoke the tendermint testnet generator for a set of network settings"""

    def __init__(self, settings: NetworkSettings,
                 output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR,
                 tendermint_dir: Union[str, Path] = DEFAULT_TENDERMINT_DIR,
                 starting_ip: str = DEFAULT_STARTING_IP,
                 dry_run: bool = False,
                 protected_paths: Optional[Iterable[Union[str, Path]]] = None):
        """
        Args:
            settings: Effective network settings
            output_dir: Directory the generator writes node directories to
            tendermint_dir: Root holding one <version>/tendermint binary per release
            starting_ip: First node address the generator assigns
            dry_run: Log the command instead of running it
            protected_paths: Paths output_dir must never equal or contain;
                the current directory and tendermint_dir are always included
        """
        self.settings = settings
        self.output_dir = Path(output_dir)
        self.tendermint_dir = Path(tendermint_dir)
        self.starting_ip = starting_ip
        self.dry_run = dry_run
        self.protected_paths = [Path.cwd(), self.tendermint_dir]
        self.protected_paths.extend(Path(p) for p in protected_paths or [])

    def binary_path(self) -> Path:
        return self.tendermint_dir / self.settings.tm_version / 'tendermint'

    def build_command(self) -> List[str]:
        return [
            str(self.binary_path()),
            'testnet',
            '--o', str(self.output_dir),
            '--v', str(self.settings.node_count),
            '--populate-persistent-peers',
            '--starting-ip-address', self.starting_ip,
        ]

    def node_dirs(self) -> List[Path]:
        return [self.output_dir / node_dir_name(i) for i in range(self.settings.node_count)]

    def check_output_dir(self):
        """Refuse an output directory whose removal would take a protected path with it"""
        output = self.output_dir.resolve()
        for protected in self.protected_paths:
            target = protected.resolve()
            if output == target or output in target.parents:
                raise GeneratorError(
                    f"refusing to use {self.output_dir} as output directory: "
                    f"it contains {protected}"
                )

    def remove_existing(self):
        """Delete output from a previous run"""
        logger.info("removing existing tendermint config files")
        self.check_output_dir()
        if self.dry_run:
            logger.info(f"[dry-run] would remove {self.output_dir}")
            return
        if not self.output_dir.exists():
            return
        try:
            shutil.rmtree(self.output_dir)
        except OSError as e:
            raise GeneratorError(f"cannot remove {self.output_dir}: {e}") from e

    def run(self) -> List[Path]:
        """
        Run the generator and verify its output.

        Returns:
            Generated node directories in index order
        """
        logger.info("generating tendermint config files")
        cmd = self.build_command()
        logger.debug(' '.join(cmd))

        if self.dry_run:
            logger.info(f"[dry-run] would run: {' '.join(cmd)}")
            return self.node_dirs()

        binary = self.binary_path()
        if not binary.is_file():
            raise GeneratorError(f"tendermint binary not found: {binary}")
        if not os.access(binary, os.X_OK):
            raise GeneratorError(f"tendermint binary is not executable: {binary}")

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding='utf-8',
                errors='replace',
            )
        except OSError as e:
            raise GeneratorError(f"cannot run {binary}: {e}") from e

        output = result.stdout or ''
        logger.debug(output)

        if result.returncode != 0:
            raise GeneratorError(
                f"tendermint testnet exited with status {result.returncode}: {output.strip()}"
            )
        if not output.strip():
            raise GeneratorError("tendermint testnet output is empty")
        if SUCCESS_MARKER not in output:
            raise GeneratorError(f"tendermint testnet did not return success: {output.strip()}")

        return self.verify_output()

    def verify_output(self) -> List[Path]:
        """Check that one directory was generated per configured node"""
        node_dirs = self.node_dirs()
        missing = [d.name for d in node_dirs if not d.is_dir()]
        if missing:
            raise GeneratorError(
                f"generator produced {self.settings.node_count - len(missing)} of "
                f"{self.settings.node_count} node directories, missing: {', '.join(missing)}"
            )

        expected = {d.name for d in node_dirs}
        extra = sorted(
            entry.name for entry in self.output_dir.iterdir()
            if entry.is_dir() and NODE_DIR_PATTERN.match(entry.name) and entry.name not in expected
        )
        if extra:
            logger.warning(
                f"generator produced {len(expected) + len(extra)} node directories for "
                f"{self.settings.node_count} nodes, ignoring: {', '.join(extra)}"
            )
        return node_dirs
