"""Exceptions raised by the configurator pipeline."""


class ConfiguratorError(Exception):
    """Base class for errors that abort a configurator run"""


class SettingsError(ConfiguratorError):
    """Settings file is missing, malformed or holds invalid values"""


class GeneratorError(ConfiguratorError):
    """The external testnet generator failed or produced unexpected output"""


class NodeConfigError(ConfiguratorError):
    """A generated node config file could not be read or written"""
