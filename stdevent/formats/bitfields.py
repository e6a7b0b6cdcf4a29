# -*- coding: utf-8 -*-
"""
Bit-field helpers for packed digitizer words.

BitField names a ``width``-bit field at bit ``offset`` of an integer word and
extracts it from Python ints or whole numpy arrays. BitReader wraps a byte
block and reads little-endian integers and 16-bit word arrays at byte
offsets, raising InsufficientDataError instead of reading past the end of
the block.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np

from stdevent.core.exceptions import InsufficientDataError
from stdevent.core.foundation.utils import exporter

export, __all__ = exporter()

IntOrArray = Union[int, np.ndarray]


@export
@dataclass(frozen=True)
class BitField:
    name: str
    offset: int
    width: int

    def __post_init__(self) -> None:
        if self.offset < 0 or self.width <= 0:
            raise ValueError(f"invalid bit field {self.name}: offset={self.offset}, width={self.width}")

    @property
    def mask(self) -> int:
        return (1 << self.width) - 1

    def extract(self, word: IntOrArray) -> IntOrArray:
        """取出字段值；numpy 数组按元素处理"""
        if isinstance(word, np.ndarray):
            return (word >> self.offset) & self.mask
        return (int(word) >> self.offset) & self.mask


@export
class BitReader:
    """Little-endian reader over an immutable byte block."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __len__(self) -> int:
        return len(self.data)

    def _check(self, offset: int, size: int, what: str) -> None:
        if offset < 0 or offset + size > len(self.data):
            raise InsufficientDataError(expected=offset + size, available=len(self.data), what=what)

    def uint(self, offset: int, size: int, what: str = "field") -> int:
        """读取 ``size`` 字节的小端无符号整数"""
        self._check(offset, size, what)
        return int.from_bytes(self.data[offset:offset + size], byteorder="little")

    def words(self, offset: int, count: int, what: str = "samples") -> np.ndarray:
        """读取 ``count`` 个小端 16 位字 (uint16)"""
        self._check(offset, count * 2, what)
        return np.frombuffer(self.data, dtype="<u2", count=count, offset=offset)


# AD9249 采样字: 14 位幅度 + 高 2 位状态位
SAMPLE_MAGNITUDE = export(BitField("magnitude", 0, 14), name="SAMPLE_MAGNITUDE")
SAMPLE_STATUS = export(BitField("status", 14, 2), name="SAMPLE_STATUS")
# 状态字段最低位: 时间戳起始标记 (仅状态通道)
STATUS_START = export(BitField("start", 0, 1), name="STATUS_START")
