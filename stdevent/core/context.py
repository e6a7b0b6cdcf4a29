# -*- coding: utf-8 -*-
"""
Context 模块 - 单个事件流的转换上下文。

ConversionContext 由调用方持有，绑定一个注册表、一份配置，
并为流中出现的每种探测器类型维护独立的 ConversionState。
两个并发的事件流各用一个 Context 即可互不干扰。

Examples:
    >>> ctx = ConversionContext(config={"blStart": 100, "blEnd": 50})
    >>> std_event = ctx.convert(raw_event)
    >>> if std_event is not None:
    ...     print(std_event.trigger_n, std_event.planes[0].pixels)
"""

import logging
import threading
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from stdevent.core.config import Configuration, as_configuration
from stdevent.core.foundation.utils import exporter
from stdevent.core.model import RawEvent, StandardEvent
from stdevent.core.state import ConversionState
from stdevent.formats import ConverterRegistry, default_registry
from stdevent.formats.base import StdEventConverter

export, __all__ = exporter()

logger = logging.getLogger(__name__)


@export
class ConversionContext:
    """Caller-owned conversion context for one event stream."""

    def __init__(
        self,
        config: Union[None, Mapping[str, Any], Configuration] = None,
        registry: Optional[ConverterRegistry] = None,
    ):
        """
        Args:
            config: 转换器配置（字典或 Configuration）
            registry: 转换器注册表，默认使用进程级注册表
        """
        self.config = as_configuration(config)
        self.registry = registry if registry is not None else default_registry()
        self._states: Dict[int, ConversionState] = {}
        self._states_lock = threading.Lock()
        self.n_converted = 0
        self.n_dropped = 0

    def __repr__(self) -> str:
        return (
            f"<ConversionContext converted={self.n_converted} dropped={self.n_dropped} "
            f"streams={len(self._states)}>"
        )

    def get_converter(self, raw_event: RawEvent) -> StdEventConverter:
        """按原始事件的探测器类型查找转换器

        Raises:
            UnknownDetectorTypeError: 未注册该探测器类型
        """
        return self.registry.resolve(raw_event.detector_type)

    def get_state(self, raw_event: RawEvent) -> ConversionState:
        converter = self.get_converter(raw_event)
        with self._states_lock:
            state = self._states.get(raw_event.type_id)
            if state is None:
                state = converter.new_state()
                self._states[raw_event.type_id] = state
        return state

    def convert_into(self, raw_event: RawEvent, std_event: StandardEvent) -> bool:
        """把原始事件转换进调用方提供的标准事件，返回是否转换成功"""
        converter = self.get_converter(raw_event)
        state = self.get_state(raw_event)
        converted = converter.convert(raw_event, std_event, self.config, state)
        if converted:
            self.n_converted += 1
        else:
            self.n_dropped += 1
        return converted

    def convert(self, raw_event: RawEvent) -> Optional[StandardEvent]:
        """转换一个原始事件；事件被丢弃时返回 None"""
        std_event = StandardEvent.for_raw(raw_event)
        if self.convert_into(raw_event, std_event):
            return std_event
        return None

    def iter_convert(
        self, raw_events: Iterable[RawEvent], show_progress: bool = False
    ) -> Iterator[Tuple[RawEvent, Optional[StandardEvent]]]:
        """逐个转换，产生 (原始事件, 标准事件或 None)"""
        if show_progress:
            from tqdm import tqdm

            raw_events = tqdm(raw_events, desc="Converting events", leave=False)
        for raw_event in raw_events:
            yield raw_event, self.convert(raw_event)

    def convert_many(self, raw_events: Iterable[RawEvent], show_progress: bool = False) -> List[StandardEvent]:
        """转换多个原始事件，只返回成功转换的标准事件"""
        return [std for _, std in self.iter_convert(raw_events, show_progress=show_progress) if std is not None]

    def reset(self) -> None:
        """丢弃所有流状态（下一次转换重新读取配置）"""
        with self._states_lock:
            self._states.clear()
        self.n_converted = 0
        self.n_dropped = 0
