#!/usr/bin/env python3
"""
Tendermint Test Network Configurator

Bootstraps a local multi-node Tendermint testnet:
  1. Load defaults and overlay the user settings file (net.json/.toml/.yaml)
  2. Run `tendermint testnet` from ./tendermint/<version>/ into ./basenet
  3. Rewrite every node's config.toml with the real peers, ports and moniker

Usage:
    # Use ./net.json (or net.toml / net.yaml) from the current directory
    tm-configurator

    # Explicit settings file and working directory
    tm-configurator --config ~/nets/four-nodes.yaml --workdir ~/nets/run1

    # Show what would be executed
    tm-configurator --dry-run --log-level DEBUG
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

from tmnet.errors import ConfiguratorError
from tmnet.generator import DEFAULT_OUTPUT_DIR, DEFAULT_TENDERMINT_DIR, TendermintGenerator
from tmnet.node_config import patch_node_configs
from tmnet.settings import load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class NetworkConfigurator:
    """Run the settings -> generate -> patch pipeline once"""

    def __init__(self, settings_path: Optional[Union[str, Path]] = None,
                 workdir: Union[str, Path] = '.',
                 output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR,
                 tendermint_dir: Union[str, Path] = DEFAULT_TENDERMINT_DIR,
                 dry_run: bool = False):
        self.workdir = Path(workdir)
        self.settings_path = Path(settings_path) if settings_path else None
        # Relative paths are taken from workdir; absolute ones are kept as-is
        self.output_dir = self.workdir / output_dir
        self.tendermint_dir = self.workdir / tendermint_dir
        self.dry_run = dry_run
        self.settings = None

    def protected_paths(self) -> List[Path]:
        """Paths the output directory cleanup must never remove"""
        paths = [self.workdir, self.tendermint_dir]
        if self.settings_path:
            paths.append(self.settings_path)
        return paths

    def run(self) -> int:
        """
        Execute the pipeline, stopping at the first error.

        Returns:
            Process exit status (0 on success)
        """
        try:
            self.settings = load_settings(self.settings_path, directory=self.workdir)
            self.settings.report()

            generator = TendermintGenerator(
                self.settings,
                output_dir=self.output_dir,
                tendermint_dir=self.tendermint_dir,
                dry_run=self.dry_run,
                protected_paths=self.protected_paths(),
            )
            generator.remove_existing()
            generator.run()

            if self.dry_run:
                logger.info(f"[dry-run] would patch {self.settings.node_count} node configs")
            else:
                patch_node_configs(self.settings, self.output_dir)
        except ConfiguratorError as e:
            logger.error(str(e))
            return 1

        logger.info("done.")
        return 0


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Generate and configure a local Tendermint test network'
    )
    parser.add_argument('--config', default=None,
                        help='Settings file (default: net.json/.toml/.yaml in --workdir)')
    parser.add_argument('--workdir', default='.',
                        help='Directory holding the settings file, tendermint/ and basenet/')
    parser.add_argument('--output-dir', default=DEFAULT_OUTPUT_DIR,
                        help=f'Generated network directory (default: {DEFAULT_OUTPUT_DIR})')
    parser.add_argument('--tendermint-dir', default=DEFAULT_TENDERMINT_DIR,
                        help=f'Root of <version>/tendermint binaries (default: {DEFAULT_TENDERMINT_DIR})')
    parser.add_argument('--dry-run', action='store_true',
                        help='Log the generator command without running it or touching files')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging verbosity (default: INFO)')
    parser.add_argument('--log-file', default=None,
                        help='Also write the log to this file')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    configurator = NetworkConfigurator(
        settings_path=args.config,
        workdir=args.workdir,
        output_dir=args.output_dir,
        tendermint_dir=args.tendermint_dir,
        dry_run=args.dry_run,
    )
    sys.exit(configurator.run())


if __name__ == "__main__":
    main()
