"""
核心子包 - 数据模型、配置、异常与流状态。
"""

from .config import Configuration
from .exceptions import (
    CalibrationError,
    ConfigurationError,
    ConversionError,
    DuplicateConverterError,
    ErrorSeverity,
    InsufficientDataError,
    UnknownDetectorTypeError,
)
from .model import NO_TIMESTAMP, Pixel, RawEvent, StandardEvent, StandardPlane
from .state import ConversionState

__all__ = [
    "Configuration",
    "ConversionState",
    "CalibrationError",
    "ConfigurationError",
    "ConversionError",
    "DuplicateConverterError",
    "ErrorSeverity",
    "InsufficientDataError",
    "UnknownDetectorTypeError",
    "NO_TIMESTAMP",
    "Pixel",
    "RawEvent",
    "StandardEvent",
    "StandardPlane",
]
