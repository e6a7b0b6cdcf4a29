# -*- coding: utf-8 -*-
"""
探测器格式转换器

提供统一的原始事件 → 标准事件转换接口，按探测器类型标识符分发。

核心组件:
- StdEventConverter: 转换器抽象基类
- ConverterRegistry: 探测器类型 → 转换器 的注册表
- BitField / BitReader: 打包数据字的位字段读取
- CalibrationFunction: 基于公式字符串的刻度函数

内置转换器:
- CaribouAD9249Event: AD9249 波形数字化仪

Examples:
    >>> from stdevent.formats import get_converter
    >>> from stdevent.core.model import RawEvent, StandardEvent
    >>> raw = RawEvent(0, "CaribouAD9249Event", (block,))
    >>> std = StandardEvent.for_raw(raw)
    >>> get_converter(raw.type_id).convert(raw, std, {"blStart": 100})
"""

# 基础类
from .base import StdEventConverter
from .bitfields import (
    SAMPLE_MAGNITUDE,
    SAMPLE_STATUS,
    STATUS_START,
    BitField,
    BitReader,
)
from .calibration import CalibrationFunction

# 注册表
from .registry import (
    ConverterRegistry,
    converter,
    default_registry,
    get_converter,
    is_converter_registered,
    list_converters,
    register_converter,
    unregister_converter,
)

# AD9249 转换器
from .ad9249 import (
    CHANNEL_MAPPING,
    AD9249Converter,
    AD9249Settings,
    Waveform,
    decode_block,
)

BUILTIN_CONVERTERS = (AD9249Converter,)


def register_builtin_converters(registry: ConverterRegistry, replace: bool = False) -> None:
    """把内置转换器注册到 ``registry``"""
    for cls in BUILTIN_CONVERTERS:
        if replace or not registry.is_registered(cls.detector_name):
            registry.register(cls.detector_name, cls, replace=replace)


# 自动注册内置转换器
register_builtin_converters(default_registry())

__all__ = [
    # 基础类
    "StdEventConverter",
    "BitField",
    "BitReader",
    "CalibrationFunction",
    "SAMPLE_MAGNITUDE",
    "SAMPLE_STATUS",
    "STATUS_START",
    # 注册表
    "ConverterRegistry",
    "converter",
    "default_registry",
    "get_converter",
    "is_converter_registered",
    "list_converters",
    "register_converter",
    "unregister_converter",
    "register_builtin_converters",
    "BUILTIN_CONVERTERS",
    # AD9249
    "AD9249Converter",
    "AD9249Settings",
    "CHANNEL_MAPPING",
    "Waveform",
    "decode_block",
]
