"""
Exceptions 模块 - 转换过程的异常分类。

只有配置/构建层面的问题（未注册的探测器类型、重复注册、非法配置）
会以异常形式抛出；单个事件的数据异常在转换器内部处理，
通过 convert() 的布尔返回值表达。
"""

from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """错误严重程度枚举"""
    FATAL = "fatal"  # 致命错误，必须停止
    RECOVERABLE = "recoverable"  # 可恢复错误，丢弃当前事件后继续


class ConversionError(Exception):
    """转换相关异常的基类

    包含错误严重程度以及（可选的）探测器类型和事件编号。
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.FATAL,
        detector_type: Optional[str] = None,
        event_number: Optional[int] = None,
    ):
        """
        初始化转换异常

        Args:
            message: 错误消息
            severity: 错误严重程度
            detector_type: 相关的探测器类型名称或标识符
            event_number: 相关的事件编号
        """
        self.severity = severity
        self.detector_type = detector_type
        self.event_number = event_number
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return self.severity is not ErrorSeverity.FATAL


class UnknownDetectorTypeError(ConversionError, LookupError):
    """注册表中没有对应探测器类型的转换器"""

    def __init__(self, detector_type, available=None):
        self.available = list(available or [])
        message = f"No converter registered for detector type {detector_type!r}"
        if self.available:
            message += f". Available: {self.available}"
        super().__init__(message, severity=ErrorSeverity.FATAL, detector_type=detector_type)


class DuplicateConverterError(ConversionError):
    """同一探测器标识符被重复注册"""

    def __init__(self, detector_type, existing: str):
        self.existing = existing
        super().__init__(
            f"Detector type {detector_type!r} is already registered to {existing}; "
            "pass replace=True to swap it explicitly",
            severity=ErrorSeverity.FATAL,
            detector_type=detector_type,
        )


class ConfigurationError(ConversionError, ValueError):
    """配置值非法（窗口边界、刻度范围等）"""

    def __init__(self, message: str, key: Optional[str] = None, detector_type: Optional[str] = None):
        self.key = key
        super().__init__(message, severity=ErrorSeverity.FATAL, detector_type=detector_type)


class CalibrationError(ConfigurationError):
    """刻度公式无法解析或求值"""

    def __init__(self, message: str, formula: Optional[str] = None, key: Optional[str] = None):
        self.formula = formula
        super().__init__(message, key=key)


class InsufficientDataError(ConversionError):
    """原始数据块短于布局要求的长度

    由数据块解析器抛出，并在转换器内部被捕获转换为 ``False``。
    """

    def __init__(self, expected: int, available: int, what: str = "event"):
        self.expected = expected
        self.available = available
        super().__init__(
            f"Insufficient data for {what}: need {expected} bytes, got {available}",
            severity=ErrorSeverity.RECOVERABLE,
        )
