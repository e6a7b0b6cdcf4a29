# -*- coding: utf-8 -*-
"""
Utils 模块 - 核心工具函数与导出管理。

本模块提供 stdevent 的基础工具：
1. 模块 API 导出管理 (exporter)：统一管理各模块的 __all__ 导出。
2. 探测器类型标识 (cstr2hash)：由探测器规范名称计算稳定的 32 位标识符，
   注册表与原始事件都使用它进行分发。

所有新模块必须使用本模块提供的 exporter 管理其公共接口。
"""

from typing import Any, List, Optional, Tuple

# =============================================================================
# Exporter - 模块 API 导出管理
# =============================================================================

_EXPORT_SENTINEL = object()


def exporter(export_self: bool = False) -> Tuple[Any, List[str]]:
    """
    创建一个模块 API 导出管理器，类似 strax.exporter()。

    返回一个 (export, __all__) 元组：
    - export: 装饰器或函数，用于标记要导出的函数/类/常量
    - __all__: 字符串列表，包含所有被标记的名称

    用法:
        export, __all__ = exporter()

        @export
        def my_public_function():
            pass

        MY_CONSTANT = export(42, "MY_CONSTANT")

    Args:
        export_self: 如果为 True，将 'exporter' 加入 __all__

    Returns:
        (export, __all__) 元组
    """
    __all__: List[str] = []

    if export_self:
        __all__.append("exporter")

    def export(obj: Any = _EXPORT_SENTINEL, name: Optional[str] = None) -> Any:
        # @export(name="...") 作为装饰器工厂
        if obj is _EXPORT_SENTINEL:
            return lambda o: export(o, name=name)

        actual_name = name or getattr(obj, "__name__", None)

        if actual_name is None:
            raise ValueError(
                f"Cannot export {obj!r}: it has no __name__ and no name was provided. "
                "For constants, use: CONST = export(value, name='CONST')"
            )

        if actual_name not in __all__:
            __all__.append(actual_name)

        return obj

    return export, __all__


export, __all__ = exporter(export_self=True)


# =============================================================================
# Detector type identifiers
# =============================================================================

HASH_SEED = export(5381, name="HASH_SEED")


@export
def cstr2hash(name: str) -> int:
    """Compute the 32-bit detector-type identifier of a canonical name.

    The hash is evaluated from the last character towards the first
    (``h = h * 33 ^ c``, seeded with 5381), so identifiers agree with the
    ones produced by the data acquisition side for the same name.

    Examples:
        >>> cstr2hash("") == HASH_SEED
        True
        >>> cstr2hash("CaribouAD9249Event") == cstr2hash("CaribouAD9249Event")
        True
    """
    if not isinstance(name, str):
        raise TypeError(f"detector type name must be a str, got {type(name).__name__}")
    h = HASH_SEED
    for char in reversed(name):
        h = ((h * 33) ^ ord(char)) & 0xFFFFFFFF
    return h
