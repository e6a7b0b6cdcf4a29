"""
转换器注册表

按探测器类型标识符（规范名称的 32 位哈希）注册和查找转换器。
注册表是显式的：内置转换器在 ``stdevent.formats`` 导入时通过
``register_builtin_converters()`` 注册，用户的转换器在启动阶段自行注册。
重复注册同一标识符会被拒绝，除非显式指定 ``replace=True``。

Examples:
    >>> from stdevent.formats import get_converter
    >>> converter = get_converter("CaribouAD9249Event")
    >>> converter.convert(raw_event, std_event, config)
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union

from stdevent.core.exceptions import DuplicateConverterError, UnknownDetectorTypeError
from stdevent.core.foundation.utils import cstr2hash, exporter

if TYPE_CHECKING:
    from .base import StdEventConverter

export, __all__ = exporter()

logger = logging.getLogger(__name__)

ConverterFactory = Callable[[], "StdEventConverter"]
DetectorKey = Union[int, str]


def _resolve_key(key: DetectorKey) -> int:
    if isinstance(key, bool):
        raise TypeError("detector type key must be an int identifier or a name")
    if isinstance(key, int):
        return key & 0xFFFFFFFF
    if isinstance(key, str):
        return cstr2hash(key)
    raise TypeError(f"detector type key must be an int identifier or a name, got {type(key).__name__}")


@export
@dataclass
class ConverterEntry:
    """注册表条目"""

    type_id: int
    name: str
    factory: ConverterFactory
    instance: Optional["StdEventConverter"] = None


@export
class ConverterRegistry:
    """Maps detector-type identifiers to converter factories."""

    def __init__(self) -> None:
        self._entries: Dict[int, ConverterEntry] = {}

    def __contains__(self, key: DetectorKey) -> bool:
        return self.is_registered(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ConverterRegistry {self.list_converters()}>"

    def register(
        self,
        key: DetectorKey,
        factory: ConverterFactory,
        *,
        name: Optional[str] = None,
        replace: bool = False,
    ) -> int:
        """注册一个转换器工厂

        Args:
            key: 探测器规范名称或已计算好的标识符
            factory: 无参工厂（通常就是转换器类）
            name: 展示用名称；key 为名称时默认使用 key
            replace: 允许替换已有注册（热替换）

        Returns:
            探测器类型标识符

        Raises:
            DuplicateConverterError: 标识符已注册且 replace=False
        """
        type_id = _resolve_key(key)
        if name is None:
            name = key if isinstance(key, str) else getattr(factory, "detector_name", "") or f"0x{type_id:08x}"

        existing = self._entries.get(type_id)
        if existing is not None:
            if not replace:
                raise DuplicateConverterError(name, existing=existing.name)
            logger.info("Replacing converter for %s (0x%08x)", name, type_id)

        self._entries[type_id] = ConverterEntry(type_id=type_id, name=name, factory=factory)
        logger.debug("Registered converter %s (0x%08x)", name, type_id)
        return type_id

    def unregister(self, key: DetectorKey) -> bool:
        return self._entries.pop(_resolve_key(key), None) is not None

    def is_registered(self, key: DetectorKey) -> bool:
        return _resolve_key(key) in self._entries

    def resolve(self, key: DetectorKey) -> "StdEventConverter":
        """返回已注册的转换器实例（首次调用时由工厂创建）

        Raises:
            UnknownDetectorTypeError: 未注册该探测器类型
        """
        entry = self._entry(key)
        if entry.instance is None:
            entry.instance = entry.factory()
        return entry.instance

    def create(self, key: DetectorKey) -> "StdEventConverter":
        """用工厂创建一个新的转换器实例"""
        return self._entry(key).factory()

    def name_of(self, key: DetectorKey) -> str:
        return self._entry(key).name

    def list_converters(self) -> List[str]:
        return sorted(entry.name for entry in self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def _entry(self, key: DetectorKey) -> ConverterEntry:
        entry = self._entries.get(_resolve_key(key))
        if entry is None:
            raise UnknownDetectorTypeError(key, available=self.list_converters())
        return entry


# 默认（进程级）注册表
_DEFAULT_REGISTRY = ConverterRegistry()


@export
def default_registry() -> ConverterRegistry:
    return _DEFAULT_REGISTRY


@export
def register_converter(
    key: DetectorKey, factory: ConverterFactory, *, name: Optional[str] = None, replace: bool = False
) -> int:
    """在默认注册表中注册转换器"""
    return _DEFAULT_REGISTRY.register(key, factory, name=name, replace=replace)


@export
def converter(name: str, *, replace: bool = False, registry: Optional[ConverterRegistry] = None):
    """类装饰器：以 ``name`` 注册转换器类并设置其 ``detector_name``

    Examples:
        >>> @converter("MyDetectorEvent")
        ... class MyConverter(StdEventConverter):
        ...     ...
    """

    def decorator(cls):
        cls.detector_name = name
        target = registry if registry is not None else _DEFAULT_REGISTRY
        target.register(name, cls, replace=replace)
        return cls

    return decorator


@export
def get_converter(key: DetectorKey) -> "StdEventConverter":
    """从默认注册表获取转换器实例

    Raises:
        UnknownDetectorTypeError: 未注册该探测器类型
    """
    return _DEFAULT_REGISTRY.resolve(key)


@export
def list_converters() -> List[str]:
    return _DEFAULT_REGISTRY.list_converters()


@export
def is_converter_registered(key: DetectorKey) -> bool:
    return _DEFAULT_REGISTRY.is_registered(key)


@export
def unregister_converter(key: DetectorKey) -> bool:
    return _DEFAULT_REGISTRY.unregister(key)
