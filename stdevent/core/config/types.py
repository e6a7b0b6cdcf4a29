# -*- coding: utf-8 -*-
"""
配置系统类型定义

定义配置读取过程中使用的核心类型：
- ConfigSource: 配置值来源枚举
- ConfigValue: 单个配置值及其元信息
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConfigSource(Enum):
    """配置值来源枚举

    Attributes:
        EXPLICIT: 配置中显式设置的值
        DEFAULT: 调用方提供的默认值
    """
    EXPLICIT = "explicit"
    DEFAULT = "default"


@dataclass(frozen=True)
class ConfigValue:
    """单个配置值及其元信息

    Attributes:
        key: 配置键名
        value: 配置值（已按默认值类型转换）
        source: 配置来源

    Examples:
        >>> cv = ConfigValue(key="blStart", value=150, source=ConfigSource.DEFAULT)
        >>> print(cv.summary())
        blStart = 150 (default)
    """
    key: str
    value: Any
    source: ConfigSource

    def summary(self) -> str:
        """生成配置值摘要字符串"""
        value_str = repr(self.value)
        if len(value_str) > 50:
            value_str = value_str[:47] + "..."
        return f"{self.key} = {value_str} ({self.source.value})"

    def is_explicit(self) -> bool:
        return self.source == ConfigSource.EXPLICIT
