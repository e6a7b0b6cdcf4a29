"""
ConversionState - 单个事件流中某一转换器的可变状态。

转换器实例本身不保存跨事件的可变状态；配置缓存、触发计数和运行起始时间
都放在调用方拥有的 ConversionState 中，每个事件流、每种转换器一个。
同一个 state 的所有访问都通过它的锁串行化。
"""

from dataclasses import dataclass, field
import threading
from typing import Any, Optional

from stdevent.core.foundation.utils import exporter

export, __all__ = exporter()

NO_RUN_START = export(-1, name="NO_RUN_START")


@export
@dataclass
class ConversionState:
    """Per-stream converter state.

    Attributes:
        detector_type: 所属转换器的探测器类型名称
        settings: 首次转换时捕获的配置（None 表示尚未配置）
        trigger_number: 已处理事件计数，从 0 开始
        run_start_time: 运行起始时间戳，NO_RUN_START 表示尚未记录
    """

    detector_type: str = ""
    settings: Optional[Any] = None
    trigger_number: int = 0
    run_start_time: int = NO_RUN_START
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def configured(self) -> bool:
        return self.settings is not None

    def next_trigger(self) -> int:
        """返回当前触发号并递增计数器"""
        current = self.trigger_number
        self.trigger_number += 1
        return current

    def reset(self, keep_settings: bool = False) -> None:
        """重置计数器；``keep_settings=False`` 时下次转换会重新读取配置"""
        with self.lock:
            self.trigger_number = 0
            self.run_start_time = NO_RUN_START
            if not keep_settings:
                self.settings = None
