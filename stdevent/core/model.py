"""
Model 模块 - 原始事件与标准事件的数据模型。

- RawEvent: 探测器输出的只读视图（有序的二进制数据块 + 元信息）
- StandardEvent: 与探测器无关的标准事件（平面、像素、时间与触发号）
- StandardPlane / Pixel: 单个物理传感器的稀疏像素数据

转换器只读取 RawEvent，并向调用方拥有的 StandardEvent 追加平面，
从不删除已有内容。
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from stdevent.core.foundation.utils import cstr2hash, exporter

export, __all__ = exporter()

NO_TIMESTAMP = export(-1, name="NO_TIMESTAMP")

PIXEL_DTYPE = export(
    np.dtype(
        [
            ("x", "i4"),
            ("y", "i4"),
            ("value", "f8"),
            ("timestamp", "i8"),  # NO_TIMESTAMP 表示无逐像素时间戳
        ]
    ),
    name="PIXEL_DTYPE",
)


def _as_block(block: Any) -> bytes:
    if isinstance(block, bytes):
        return block
    if isinstance(block, (bytearray, memoryview)):
        return bytes(block)
    if isinstance(block, np.ndarray):
        return np.ascontiguousarray(block, dtype=np.uint8).tobytes()
    raise TypeError(f"raw data blocks must be bytes-like, got {type(block).__name__}")


@export
@dataclass(frozen=True)
class RawEvent:
    """Read-only raw detector event.

    Attributes:
        event_number: 事件编号
        detector_type: 探测器类型的规范名称，例如 "CaribouAD9249Event"
        blocks: 有序的二进制数据块
        run_number: 运行号（可选）
    """

    event_number: int
    detector_type: str
    blocks: Tuple[bytes, ...] = ()
    run_number: Optional[int] = None

    def __post_init__(self) -> None:
        if self.event_number < 0:
            raise ValueError("event_number must be non-negative")
        object.__setattr__(self, "blocks", tuple(_as_block(b) for b in self.blocks))

    @property
    def type_id(self) -> int:
        """32 位探测器类型标识符"""
        return cstr2hash(self.detector_type)

    @property
    def num_blocks(self) -> int:
        return len(self.blocks)

    def get_block(self, index: int) -> bytes:
        if not 0 <= index < len(self.blocks):
            raise IndexError(
                f"event {self.event_number} has {len(self.blocks)} block(s), no block {index}"
            )
        return self.blocks[index]


@export
@dataclass(frozen=True)
class Pixel:
    x: int
    y: int
    value: float
    timestamp: Optional[int] = None


@export
class StandardPlane:
    """One physical sensor instance within a standard event."""

    def __init__(self, plane_id: int, system: str, sensor: str):
        self.plane_id = plane_id
        self.system = system
        self.sensor = sensor
        self.x_size = 0
        self.y_size = 0
        self.n_pixels_hint = 0
        self._pixels: List[Pixel] = []

    def __repr__(self) -> str:
        return (
            f"StandardPlane(id={self.plane_id}, system={self.system!r}, sensor={self.sensor!r}, "
            f"size={self.x_size}x{self.y_size}, pixels={len(self._pixels)})"
        )

    def set_size_zs(self, x_size: int, y_size: int, n_pixels: int = 0) -> None:
        """声明可寻址尺寸（零压缩/稀疏平面）

        Args:
            x_size: 列数
            y_size: 行数
            n_pixels: 预计像素数，仅作提示
        """
        if x_size < 0 or y_size < 0:
            raise ValueError("plane size must be non-negative")
        self.x_size = int(x_size)
        self.y_size = int(y_size)
        self.n_pixels_hint = int(n_pixels)

    def push_pixel(self, x: int, y: int, value: float, timestamp: Optional[int] = None) -> None:
        self._pixels.append(
            Pixel(int(x), int(y), float(value), None if timestamp is None else int(timestamp))
        )

    @property
    def pixels(self) -> Tuple[Pixel, ...]:
        return tuple(self._pixels)

    @property
    def num_pixels(self) -> int:
        return len(self._pixels)

    def to_array(self) -> np.ndarray:
        """像素列表转换为 PIXEL_DTYPE 结构化数组"""
        arr = np.zeros(len(self._pixels), dtype=PIXEL_DTYPE)
        for i, px in enumerate(self._pixels):
            arr[i] = (px.x, px.y, px.value, NO_TIMESTAMP if px.timestamp is None else px.timestamp)
        return arr


@export
@dataclass
class StandardEvent:
    """Mutable accumulator of converted planes for one raw event."""

    detector_type: str = ""
    event_number: int = 0
    time_begin: int = 0
    time_end: int = 0
    trigger_n: int = -1
    planes: List[StandardPlane] = field(default_factory=list)

    @classmethod
    def for_raw(cls, raw_event: RawEvent) -> "StandardEvent":
        """为原始事件创建空的标准事件"""
        return cls(event_number=raw_event.event_number)

    def add_plane(self, plane: StandardPlane) -> None:
        self.planes.append(plane)

    @property
    def num_planes(self) -> int:
        return len(self.planes)

    def get_plane(self, index: int) -> StandardPlane:
        return self.planes[index]

    def to_dataframe(self) -> pd.DataFrame:
        """每个像素一行的 DataFrame

        列: event_number, trigger_n, plane_id, sensor, x, y, value, timestamp
        """
        columns = ["event_number", "trigger_n", "plane_id", "sensor", "x", "y", "value", "timestamp"]
        rows = [
            (
                self.event_number,
                self.trigger_n,
                plane.plane_id,
                plane.sensor,
                px.x,
                px.y,
                px.value,
                NO_TIMESTAMP if px.timestamp is None else px.timestamp,
            )
            for plane in self.planes
            for px in plane.pixels
        ]
        return pd.DataFrame(rows, columns=columns)


@export
def events_to_dataframe(events: Sequence[StandardEvent]) -> pd.DataFrame:
    """把多个标准事件的像素合并为一个 DataFrame"""
    frames = [ev.to_dataframe() for ev in events]
    if not frames:
        return StandardEvent().to_dataframe()
    return pd.concat(frames, ignore_index=True)
