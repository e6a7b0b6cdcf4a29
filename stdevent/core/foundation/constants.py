"""
stdevent 全局常量定义

此模块集中定义解码器使用的魔术数字和默认配置，
避免硬编码值分散在代码库中。
"""

from stdevent.core.foundation.utils import exporter

export, __all__ = exporter()


@export
class DecoderDefaults:
    """AD9249 波形解码的默认参数

    窗口边界均以采样点为单位；基线窗口相对于峰值位置向前计数，
    即基线取 [peak - BL_START, peak - BL_END)。
    """

    # 基线窗口 (相对峰值向前的采样点数)
    BL_START = 150
    BL_END = 80

    # 峰值搜索窗口 [AMP_START, AMP_END)
    AMP_START = 170
    AMP_END = 270

    # 刻度函数的取值范围
    CALIB_RANGE_MIN = 0.0
    CALIB_RANGE_MAX = 16384.0

    # 默认刻度公式（恒等映射）
    CALIB_FORMULA = "x"


@export
class AD9249Layout:
    """AD9249 原始数据块布局常量"""

    # 每个 ADC 半区的块头长度 (2 字节保留 + 2 字节 burst + 4 字节 size)
    HEADER_OFFSET = 8

    # 每个 burst 每通道的采样点数
    SAMPLES_PER_BURST = 128

    # 每个 ADC 半区的逻辑通道数，以及总通道数
    CHANNELS_PER_ADC = 8
    N_CHANNELS = 16

    # 每个 ADC 半区中只携带状态位的通道 (本地编号)
    STATUS_CHANNEL = 7

    # 时间戳由 28 个 2-bit 状态字段拼成
    TIMESTAMP_FIELDS = 28

    # 起始标记只在前 8 个字段内有效
    TIMESTAMP_START_WINDOW = 8

    # 65 MHz 时钟
    CLOCK_MHZ = 65.0
