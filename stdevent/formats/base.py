# -*- coding: utf-8 -*-
"""
转换器基础定义 - StdEventConverter

每种探测器提供一个 StdEventConverter 子类，把该探测器的 RawEvent
转换为标准事件。子类实现 ``configure()``（把配置捕获为不可变的 settings）
和 ``converting()``（单个事件的解码），基类负责：

- 配置只在每个 ConversionState 的生命周期内读取一次；
- 同一 state 上的转换调用串行化；
- 返回值语义：True 表示已追加平面，False 表示事件被有意丢弃。

Examples:
    >>> class MyConverter(StdEventConverter):
    ...     detector_name = "MyDetectorEvent"
    ...     def configure(self, config):
    ...         return {"threshold": config.get("threshold", 10)}
    ...     def converting(self, raw_event, std_event, settings, state):
    ...         ...
    ...         return True
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Mapping, Optional, Union

from stdevent.core.config import Configuration, as_configuration
from stdevent.core.exceptions import ConfigurationError
from stdevent.core.foundation.utils import cstr2hash, exporter
from stdevent.core.model import RawEvent, StandardEvent
from stdevent.core.state import ConversionState

export, __all__ = exporter()

logger = logging.getLogger(__name__)


@export
class StdEventConverter(ABC):
    """Abstract conversion contract: one raw event into the standard model."""

    #: 探测器类型的规范名称，注册表用它计算标识符
    detector_name: str = ""

    def __init__(self) -> None:
        self.default_state = self.new_state()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(detector_name={self.detector_name!r})"

    @classmethod
    def type_id(cls) -> int:
        return cstr2hash(cls.detector_name)

    def new_state(self) -> ConversionState:
        """为一个新的事件流创建状态"""
        return ConversionState(detector_type=self.detector_name)

    def convert(
        self,
        raw_event: RawEvent,
        std_event: StandardEvent,
        config: Union[None, Mapping[str, Any], Configuration] = None,
        state: Optional[ConversionState] = None,
    ) -> bool:
        """转换一个原始事件

        Args:
            raw_event: 原始事件（只读）
            std_event: 调用方拥有的标准事件，转换结果追加到其中
            config: 配置；只在 state 首次使用时读取
            state: 事件流状态；为 None 时使用转换器自带的默认状态

        Returns:
            True 表示已转换；False 表示事件被丢弃（数据不足、诊断模式等）

        Raises:
            ConfigurationError: 首次配置时配置值非法
        """
        if state is None:
            state = self.default_state

        with state.lock:
            if state.settings is None:
                try:
                    state.settings = self.configure(as_configuration(config))
                except ConfigurationError as exc:
                    # 标记触发配置读取的事件
                    exc.detector_type = exc.detector_type or self.detector_name
                    exc.event_number = raw_event.event_number
                    raise
                logger.debug("%s configured: %r", self.detector_name, state.settings)
            return bool(self.converting(raw_event, std_event, state.settings, state))

    @abstractmethod
    def configure(self, config: Configuration) -> Any:
        """读取配置，返回不可变的 settings 对象"""

    @abstractmethod
    def converting(
        self,
        raw_event: RawEvent,
        std_event: StandardEvent,
        settings: Any,
        state: ConversionState,
    ) -> bool:
        """解码单个事件（调用时已持有 state.lock）"""
