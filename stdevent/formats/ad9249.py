# -*- coding: utf-8 -*-
"""
AD9249 waveform digitizer converter.

One raw event carries a single data block with two ADC halves of eight
channels each::

    0..1   reserved
    2..3   burst length (LE16)
    4..7   size of ADC half 0 in bytes (LE32)
    8..    ADC half 0 samples, interleaved over 8 channels
    then   8-byte header of ADC half 1 (size at +4..+7) and its samples

Every sample is a little-endian 16-bit word: 14-bit magnitude plus two
status bits. Local channel 7 of each half carries only status bits; the
status fields of the other channels are shifted together into a 65 MHz
trigger timestamp. Per channel the pulse amplitude is peak minus baseline,
mapped through a per-pixel calibration function and clipped.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from stdevent.core.config import Configuration
from stdevent.core.exceptions import ConfigurationError, InsufficientDataError
from stdevent.core.foundation.constants import AD9249Layout, DecoderDefaults
from stdevent.core.foundation.utils import exporter
from stdevent.core.model import RawEvent, StandardEvent, StandardPlane
from stdevent.core.state import ConversionState

from .base import StdEventConverter
from .bitfields import SAMPLE_MAGNITUDE, SAMPLE_STATUS, STATUS_START, BitReader
from .calibration import CalibrationFunction

export, __all__ = exporter()

logger = logging.getLogger(__name__)

# Channels are sorted like ADC0: A1 C1 E1 ...
#                          ADC1: B1 D1 F1 ...
# Pixel matrix:
#   A2, H2, F2, H1
#   C1, A1, D2, F1
#   C2, E1, B1, B2
#   E2, G1, G2, D1
CHANNEL_MAPPING: Tuple[Tuple[int, int], ...] = export(
    (
        (1, 2), (0, 2), (1, 1), (1, 0), (0, 3), (0, 1), (0, 0), (2, 0),
        (2, 1), (3, 0), (3, 2), (3, 3), (3, 1), (2, 2), (2, 3), (1, 3),
    ),
    name="CHANNEL_MAPPING",
)

PLANE_SYSTEM = "Caribou"
PLANE_SENSOR = "AD9249"
MATRIX_SIZE = (4, 4)

# 采样间隔 (us)，65 MHz
SAMPLE_PERIOD_US = 1.0 / AD9249Layout.CLOCK_MHZ


@export
def expected_event_length(burst_length: int) -> int:
    """Minimum block size in bytes for ``burst_length`` bursts."""
    return burst_length * AD9249Layout.SAMPLES_PER_BURST * 2 * AD9249Layout.N_CHANNELS + 16


@export
def calibration_key(x: int, y: int) -> str:
    return f"calibration_px{x}{y}"


@export
def clock_to_picoseconds(ticks: int) -> int:
    """Rescale a 65 MHz clock count to picoseconds (``ticks * 1e6 / 65``)."""
    return int(ticks * 1e6 / AD9249Layout.CLOCK_MHZ)


@export
def clip_amplitude(value: float, range_min: float, range_max: float) -> float:
    """高于上限截为上限，低于下限置 0"""
    if value > range_max:
        return range_max
    if value < range_min:
        return 0.0
    return value


@export
@dataclass
class Waveform:
    """Samples of one channel plus the scale metadata kept for dumps."""

    data: np.ndarray
    points: int = 0
    segment: int = 0
    dx: float = SAMPLE_PERIOD_US
    x0: float = 0.0
    dy: float = 1.0
    y0: float = 0.0

    @classmethod
    def from_samples(cls, samples: np.ndarray, segment: int = 0) -> "Waveform":
        data = np.asarray(samples).astype(np.int16)
        return cls(data=data, points=len(data), segment=segment)


@export
@dataclass(frozen=True)
class BlockLayout:
    """Header fields of one AD9249 data block."""

    burst_length: int
    size_adc0: int
    size_adc1: int

    @property
    def expected_length(self) -> int:
        return expected_event_length(self.burst_length)

    @property
    def offset_adc0(self) -> int:
        return AD9249Layout.HEADER_OFFSET

    @property
    def offset_adc1(self) -> int:
        return 2 * AD9249Layout.HEADER_OFFSET + self.size_adc0


@export
@dataclass
class DecodedBlock:
    layout: BlockLayout
    waveforms: List[Waveform]
    timestamps: Tuple[int, int]


@export
def parse_layout(reader: BitReader) -> BlockLayout:
    """读取块头并检查长度

    Raises:
        InsufficientDataError: 数据块短于 burst 长度要求，或子块超出数据块
    """
    burst_length = reader.uint(2, 2, what="burst length")
    expected = expected_event_length(burst_length)
    if len(reader) < expected:
        raise InsufficientDataError(expected=expected, available=len(reader))

    size_adc0 = reader.uint(4, 4, what="ADC0 size")
    size_adc1 = reader.uint(AD9249Layout.HEADER_OFFSET + size_adc0 + 4, 4, what="ADC1 size")
    return BlockLayout(burst_length=burst_length, size_adc0=size_adc0, size_adc1=size_adc1)


@export
def reconstruct_timestamp(words: np.ndarray) -> int:
    """Accumulate the raw 65 MHz timestamp from the status bits of one ADC half.

    Status fields of the data channels are shifted in two bits at a time.
    The status channel (local channel 7) restarts the field index while
    fewer than eight fields have been collected and its start bit is clear.
    Only the index restarts, already accumulated bits are kept.
    """
    status = SAMPLE_STATUS.extract(np.asarray(words, dtype=np.uint16))
    n_local = AD9249Layout.CHANNELS_PER_ADC

    ts_i = 0
    timestamp = 0
    for k, value in enumerate(status.tolist()):
        if ts_i >= AD9249Layout.TIMESTAMP_FIELDS:
            break
        if k % n_local == AD9249Layout.STATUS_CHANNEL:
            if ts_i < AD9249Layout.TIMESTAMP_START_WINDOW and STATUS_START.extract(value) == 0:
                ts_i = 0
        else:
            timestamp += value << (2 * ts_i)
            ts_i += 1
    return timestamp


@export
def demultiplex(words: np.ndarray, adc: int) -> List[Waveform]:
    """Split one ADC half into its 8 channel waveforms (magnitude bits only)."""
    magnitude = SAMPLE_MAGNITUDE.extract(np.asarray(words, dtype=np.uint16))
    n_local = AD9249Layout.CHANNELS_PER_ADC
    return [Waveform.from_samples(magnitude[local::n_local], segment=adc) for local in range(n_local)]


@export
def decode_block(data: bytes) -> DecodedBlock:
    """Decode a raw AD9249 block into 16 waveforms and two timestamps (ps).

    Raises:
        InsufficientDataError: 数据块被截断
    """
    reader = BitReader(data)
    layout = parse_layout(reader)

    waveforms: List[Waveform] = []
    timestamps = []
    halves = ((layout.offset_adc0, layout.size_adc0), (layout.offset_adc1, layout.size_adc1))
    for adc, (offset, size) in enumerate(halves):
        words = reader.words(offset, size // 2, what=f"ADC{adc} samples")
        waveforms.extend(demultiplex(words, adc))
        timestamps.append(clock_to_picoseconds(reconstruct_timestamp(words)))

    return DecodedBlock(layout=layout, waveforms=waveforms, timestamps=(timestamps[0], timestamps[1]))


@export
@dataclass(frozen=True)
class AD9249Settings:
    """Configuration captured once per event stream."""

    bl_start: int = DecoderDefaults.BL_START
    bl_end: int = DecoderDefaults.BL_END
    amp_start: int = DecoderDefaults.AMP_START
    amp_end: int = DecoderDefaults.AMP_END
    calib_range_min: float = DecoderDefaults.CALIB_RANGE_MIN
    calib_range_max: float = DecoderDefaults.CALIB_RANGE_MAX
    waveform_filename: str = ""
    zero_suppression: bool = True
    calibrations: Tuple[CalibrationFunction, ...] = field(default=(), repr=False)

    @property
    def dump_enabled(self) -> bool:
        return bool(self.waveform_filename)

    @classmethod
    def from_config(cls, config: Configuration) -> "AD9249Settings":
        """读取并校验配置

        Raises:
            ConfigurationError: 窗口边界或刻度范围非法，或刻度公式无法解析
        """
        bl_start = config.get("blStart", DecoderDefaults.BL_START)
        bl_end = config.get("blEnd", DecoderDefaults.BL_END)
        amp_start = config.get("ampStart", DecoderDefaults.AMP_START)
        amp_end = config.get("ampEnd", DecoderDefaults.AMP_END)
        calib_range_min = config.get("calib_range_min", DecoderDefaults.CALIB_RANGE_MIN)
        calib_range_max = config.get("calib_range_max", DecoderDefaults.CALIB_RANGE_MAX)
        waveform_filename = config.get("waveform_filename", "")
        zero_suppression = config.get("zero_suppression", True)

        if bl_end >= bl_start:
            raise ConfigurationError(
                f"blEnd ({bl_end}) must be smaller than blStart ({bl_start})", key="blEnd"
            )
        if amp_start < 0 or amp_end <= amp_start:
            raise ConfigurationError(
                f"amplitude window [{amp_start}, {amp_end}) is empty or negative", key="ampStart"
            )
        if calib_range_min > calib_range_max:
            raise ConfigurationError(
                f"calib_range_min ({calib_range_min}) exceeds calib_range_max ({calib_range_max})",
                key="calib_range_min",
            )

        calibrations = tuple(
            CalibrationFunction(
                calibration_key(x, y),
                config.get(calibration_key(x, y), DecoderDefaults.CALIB_FORMULA),
                calib_range_min,
                calib_range_max,
            )
            for x, y in CHANNEL_MAPPING
        )

        settings = cls(
            bl_start=bl_start,
            bl_end=bl_end,
            amp_start=amp_start,
            amp_end=amp_end,
            calib_range_min=calib_range_min,
            calib_range_max=calib_range_max,
            waveform_filename=waveform_filename,
            zero_suppression=zero_suppression,
            calibrations=calibrations,
        )
        settings.log_summary()
        return settings

    def log_summary(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug("Using configuration:")
        logger.debug(" blStart   = %d", self.bl_start)
        logger.debug(" blEnd     = %d", self.bl_end)
        logger.debug(" ampStart  = %d", self.amp_start)
        logger.debug(" ampEnd    = %d", self.amp_end)
        logger.debug(" calib_range_min = %s", self.calib_range_min)
        logger.debug(" calib_range_max = %s", self.calib_range_max)
        logger.debug(" zero_suppression = %s", self.zero_suppression)
        if self.dump_enabled:
            logger.debug(" waveform_filename = %s", self.waveform_filename)
        logger.debug("Calibration functions:")
        for calibration in self.calibrations:
            logger.debug(" %s %s", calibration.name, calibration.formula)


@export
def extract_amplitude(
    samples: np.ndarray, settings: AD9249Settings, calibration: CalibrationFunction
) -> Optional[float]:
    """Calibrated pulse amplitude of one channel, or None if the channel is skipped.

    The peak is the first maximum inside ``[amp_start, amp_end)``. A channel
    is skipped when that window holds no samples or when the peak sits too
    early for a full baseline window ``[peak - bl_start, peak - bl_end)``.
    """
    window = samples[settings.amp_start:settings.amp_end]
    if window.size == 0:
        return None

    peak_pos = settings.amp_start + int(np.argmax(window))
    if peak_pos - settings.bl_start < 0:
        return None

    baseline = float(np.mean(samples[peak_pos - settings.bl_start:peak_pos - settings.bl_end]))
    amplitude = calibration(float(samples[peak_pos]) - baseline)
    return clip_amplitude(amplitude, settings.calib_range_min, settings.calib_range_max)


@export
def dump_waveforms(path: Path, trigger: int, waveforms: Sequence[Waveform]) -> None:
    """Append one ``"<trigger> <ch> <x> <y> : <samples...>"`` line per channel."""
    with open(path, "a", encoding="utf-8") as fh:
        for ch, waveform in enumerate(waveforms):
            x, y = CHANNEL_MAPPING[ch]
            samples = "".join(f"{s} " for s in waveform.data.tolist())
            fh.write(f"{trigger} {ch} {x} {y} : {samples}\n")


@export
class AD9249Converter(StdEventConverter):
    """Converter for CaribouAD9249Event raw events."""

    detector_name = "CaribouAD9249Event"

    def configure(self, config: Configuration) -> AD9249Settings:
        return AD9249Settings.from_config(config)

    def converting(
        self,
        raw_event: RawEvent,
        std_event: StandardEvent,
        settings: AD9249Settings,
        state: ConversionState,
    ) -> bool:
        logger.debug("Decoding AD event %d trig %d", raw_event.event_number, state.trigger_number)

        if raw_event.num_blocks < 1:
            logger.warning("Event %d carries no data block, dropping", raw_event.event_number)
            return False

        try:
            decoded = decode_block(raw_event.get_block(0))
        except InsufficientDataError as exc:
            logger.debug("Dropping event %d: %s", raw_event.event_number, exc)
            return False

        logger.debug("Burst: %d", decoded.layout.burst_length)

        # 只使用 ADC0 的时间戳
        timestamp = decoded.timestamps[0]
        if state.trigger_number <= 1:
            state.run_start_time = timestamp

        plane = StandardPlane(0, PLANE_SYSTEM, PLANE_SENSOR)
        plane.set_size_zs(*MATRIX_SIZE, 0)

        trigger = state.next_trigger()

        # 诊断模式：写出波形，不产生标准事件
        if settings.dump_enabled:
            dump_waveforms(Path(settings.waveform_filename), trigger, decoded.waveforms)
            return False

        for ch, waveform in enumerate(decoded.waveforms):
            amplitude = extract_amplitude(waveform.data, settings, settings.calibrations[ch])
            if amplitude is None:
                logger.debug("  Skipping channel %d max too early", ch)
                continue
            # 包括被截断为 0 的像素（负幅度或低于 calib_range_min）
            if settings.zero_suppression and amplitude == 0.0:
                continue
            x, y = CHANNEL_MAPPING[ch]
            plane.push_pixel(x, y, amplitude, timestamp)

        std_event.add_plane(plane)
        std_event.time_begin = timestamp - state.run_start_time
        std_event.time_end = timestamp - state.run_start_time
        std_event.trigger_n = trigger
        std_event.detector_type = PLANE_SENSOR
        return True
