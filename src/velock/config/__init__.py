"""Configuration schema and YAML loading."""

from .loader import config_from_dict, load_config
from .schema import Config, EpochSettings, FeeTokenSettings, LockSettings, SimulationSettings

__all__ = [
    "Config",
    "EpochSettings",
    "LockSettings",
    "FeeTokenSettings",
    "SimulationSettings",
    "load_config",
    "config_from_dict",
]
