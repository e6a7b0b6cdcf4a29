"""
配置子包

提供转换器读取的只读配置对象及其来源追踪类型。

Examples:
    >>> from stdevent.core.config import Configuration
    >>> conf = Configuration.from_file("ad9249.conf", section="Converter.ad9249")
    >>> conf.get("blStart", 150)
"""

from .configuration import Configuration, as_configuration
from .types import ConfigSource, ConfigValue

__all__ = [
    "Configuration",
    "ConfigSource",
    "ConfigValue",
    "as_configuration",
]
