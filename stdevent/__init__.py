"""
stdevent - 原始探测器数据到标准事件的转换

把各种前端芯片/数字化仪的原始二进制数据块，转换为与探测器无关的
标准事件表示（平面、像素、时间与触发号），供下游分析使用。
"""

__version__ = "0.1.0"

from .core.config import Configuration
from .core.context import ConversionContext
from .core.exceptions import ConversionError, UnknownDetectorTypeError
from .core.model import RawEvent, StandardEvent, StandardPlane
from .formats import (
    AD9249Converter,
    ConverterRegistry,
    StdEventConverter,
    get_converter,
    list_converters,
    register_converter,
)

__all__ = [
    "Configuration",
    "ConversionContext",
    "ConversionError",
    "UnknownDetectorTypeError",
    "RawEvent",
    "StandardEvent",
    "StandardPlane",
    "AD9249Converter",
    "ConverterRegistry",
    "StdEventConverter",
    "get_converter",
    "list_converters",
    "register_converter",
]
