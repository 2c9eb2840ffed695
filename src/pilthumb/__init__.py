"""pilthumb - Pillow-based multi-output thumbnail converter."""

from pilthumb.config import FORMAT, QUALITY, ConfigError, ThumbConfig, load_config
from pilthumb.converter import (
    ConversionError,
    ConversionResult,
    Converter,
    OutputResult,
    OutputSpec,
    ThumbImage,
)
from pilthumb.logger import ConvertLogger, LogConfig, VerboseLevel

__version__ = "0.1.0"

__all__ = [
    "FORMAT",
    "QUALITY",
    "ConfigError",
    "ConversionError",
    "ConversionResult",
    "ConvertLogger",
    "Converter",
    "LogConfig",
    "OutputResult",
    "OutputSpec",
    "ThumbConfig",
    "ThumbImage",
    "VerboseLevel",
    "load_config",
]
