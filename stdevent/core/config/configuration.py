# -*- coding: utf-8 -*-
"""
Configuration - 只读的键值配置

转换器通过 ``get(key, default)`` 读取配置：存储的值会被转换为默认值的类型，
键不存在时返回默认值。配置可以来自字典、JSON 文件或 INI 风格的 .conf 文件
（后者需要指定 section，例如 ``[Converter.ad9249]``）。

Examples:
    >>> conf = Configuration({"blStart": "100", "calibration_px10": "2*x"})
    >>> conf.get("blStart", 150)
    100
    >>> conf.get("blEnd", 80)
    80
    >>> conf.resolve("blEnd", 80).summary()
    'blEnd = 80 (default)'
"""

import configparser
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from stdevent.core.exceptions import ConfigurationError
from stdevent.core.foundation.utils import exporter

from .types import ConfigSource, ConfigValue

export, __all__ = exporter()

logger = logging.getLogger(__name__)

_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off", "")


def _coerce(key: str, value: Any, default: Any) -> Any:
    """按默认值的类型转换配置值"""
    if default is None or isinstance(value, type(default)) and not isinstance(default, bool):
        return value

    target = type(default)
    try:
        if target is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
                raise ValueError(value)
            return bool(value)
        if target is int:
            if isinstance(value, str):
                text = value.strip()
                # 十六进制等前缀形式 (0x10)
                return int(text, 0) if text[:2].lower() in ("0x", "0o", "0b") else int(text)
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        if target is float:
            return float(value)
        if target is str:
            return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Config key '{key}' must be of type {target.__name__}, got {value!r}",
            key=key,
        ) from exc
    return value


@export
class Configuration(Mapping[str, Any]):
    """Read-only key/value configuration with typed accessors."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None, name: str = ""):
        self._values: Dict[str, Any] = dict(values or {})
        self.name = name

    # ---- Mapping 接口 ----------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"<Configuration{label} keys={sorted(self._values)}>"

    # ---- typed access ----------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """获取配置值，并转换为 ``default`` 的类型

        Raises:
            ConfigurationError: 存储的值无法转换为默认值的类型
        """
        if key not in self._values:
            return default
        return _coerce(key, self._values[key], default)

    def resolve(self, key: str, default: Any = None) -> ConfigValue:
        """获取配置值及其来源"""
        if key in self._values:
            return ConfigValue(key, self.get(key, default), ConfigSource.EXPLICIT)
        return ConfigValue(key, default, ConfigSource.DEFAULT)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "Configuration":
        """返回合并了 ``overrides`` 的新配置（原配置不变）"""
        merged = dict(self._values)
        merged.update(overrides)
        return Configuration(merged, name=self.name)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def summary(self, defaults: Optional[Mapping[str, Any]] = None) -> List[str]:
        """生成配置摘要行

        Args:
            defaults: 需要展示的键及其默认值；为 None 时只展示显式设置的键
        """
        if defaults is None:
            return [self.resolve(key).summary() for key in sorted(self._values)]
        return [self.resolve(key, default).summary() for key, default in defaults.items()]

    # ---- loading ---------------------------------------------------------

    @classmethod
    def from_file(cls, path: Union[str, Path], section: Optional[str] = None) -> "Configuration":
        """从 JSON 或 INI 风格文件读取配置

        Args:
            path: 配置文件路径（.json 或 .conf/.ini/.cfg）
            section: INI 文件中的 section 名；JSON 文件中为顶层对象的键。
                为 None 时，INI 文件合并所有 section（后者覆盖前者）。

        Raises:
            FileNotFoundError: 文件不存在
            ConfigurationError: 文件格式错误或 section 不存在
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        if path.suffix.lower() == ".json":
            values = cls._read_json(path, section)
        else:
            values = cls._read_ini(path, section)

        logger.debug("Loaded %d configuration keys from %s", len(values), path)
        return cls(values, name=section or path.stem)

    @staticmethod
    def _read_json(path: Path, section: Optional[str]) -> Dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON configuration {path}: {exc}") from exc
        if section is not None:
            if section not in data:
                raise ConfigurationError(f"Section '{section}' not found in {path}")
            data = data[section]
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {path} must contain a JSON object")
        return data

    @staticmethod
    def _read_ini(path: Path, section: Optional[str]) -> Dict[str, Any]:
        parser = configparser.ConfigParser(interpolation=None, inline_comment_prefixes=("#", ";"))
        # 键名区分大小写 (blStart, calibration_px12 ...)
        parser.optionxform = str
        try:
            parser.read(path, encoding="utf-8")
        except configparser.Error as exc:
            raise ConfigurationError(f"Invalid configuration file {path}: {exc}") from exc

        if section is not None:
            if not parser.has_section(section):
                raise ConfigurationError(f"Section '{section}' not found in {path}")
            return dict(parser.items(section))

        values: Dict[str, Any] = {}
        for name in parser.sections():
            values.update(parser.items(name))
        return values


@export
def as_configuration(config: Union[None, Mapping[str, Any], Configuration]) -> Configuration:
    """把 None / 字典 / Configuration 统一为 Configuration"""
    if isinstance(config, Configuration):
        return config
    return Configuration(config)
