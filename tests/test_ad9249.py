"""
AD9249 转换器测试

测试内容:
- 数据块布局与长度检查
- 通道解复用与时间戳重建
- 幅度提取（基线、截断、跳过通道）
- 配置读取与校验
- 完整转换流程（触发号、运行起始时间、诊断模式）
"""

import struct

import numpy as np
import pytest

from stdevent.core.config import Configuration
from stdevent.core.exceptions import CalibrationError, ConfigurationError, InsufficientDataError
from stdevent.core.model import RawEvent, StandardEvent
from stdevent.formats.ad9249 import (
    CHANNEL_MAPPING,
    AD9249Converter,
    AD9249Settings,
    calibration_key,
    clip_amplitude,
    clock_to_picoseconds,
    decode_block,
    expected_event_length,
    extract_amplitude,
    parse_layout,
    reconstruct_timestamp,
)
from stdevent.formats.bitfields import BitReader
from tests.utils import make_ad9249_block, spike, timestamp_status


def convert(converter, block, config, state, event_number=0):
    raw = RawEvent(event_number, "CaribouAD9249Event", (block,))
    std = StandardEvent.for_raw(raw)
    return converter.convert(raw, std, config, state), std


class TestChannelMapping:
    def test_covers_matrix(self):
        assert len(CHANNEL_MAPPING) == 16
        assert set(CHANNEL_MAPPING) == {(x, y) for x in range(4) for y in range(4)}

    def test_known_positions(self):
        assert CHANNEL_MAPPING[0] == (1, 2)
        assert CHANNEL_MAPPING[3] == (1, 0)
        assert CHANNEL_MAPPING[15] == (1, 3)

    def test_calibration_key(self):
        assert calibration_key(*CHANNEL_MAPPING[3]) == "calibration_px10"


class TestBlockLayout:
    """块头与长度检查"""

    def test_expected_length(self):
        assert expected_event_length(1) == 128 * 2 * 16 + 16
        assert expected_event_length(3) == 3 * 4096 + 16

    def test_parse_layout(self):
        layout = parse_layout(BitReader(make_ad9249_block(n_samples=300, burst_length=1)))
        assert layout.burst_length == 1
        assert layout.size_adc0 == layout.size_adc1 == 300 * 8 * 2
        assert layout.offset_adc0 == 8
        assert layout.offset_adc1 == 16 + 4800

    def test_too_short_for_burst_length(self):
        block = make_ad9249_block(n_samples=300, burst_length=3)
        with pytest.raises(InsufficientDataError) as excinfo:
            decode_block(block)
        assert excinfo.value.expected == expected_event_length(3)
        assert excinfo.value.available == len(block)

    def test_truncated_header(self):
        with pytest.raises(InsufficientDataError):
            decode_block(b"\x00")

    def test_sub_block_overrun(self):
        block = bytearray(make_ad9249_block(n_samples=300))
        struct.pack_into("<I", block, 4, 100000)
        with pytest.raises(InsufficientDataError):
            decode_block(bytes(block))


class TestDemultiplex:
    def test_channel_order(self):
        ramp = np.arange(300)
        block = make_ad9249_block({0: ramp, 9: np.full(300, 5), 15: spike(300, 10, 16383)})
        waveforms = decode_block(block).waveforms

        assert len(waveforms) == 16
        assert waveforms[0].data.tolist() == ramp.tolist()
        assert waveforms[9].data.tolist() == [5] * 300
        assert waveforms[15].data[10] == 16383
        assert waveforms[1].data.sum() == 0

    def test_waveform_metadata(self):
        waveforms = decode_block(make_ad9249_block(n_samples=300)).waveforms
        assert waveforms[0].data.dtype == np.int16
        assert waveforms[0].points == 300
        assert (waveforms[0].segment, waveforms[8].segment) == (0, 1)
        assert waveforms[0].dx == pytest.approx(1 / 65.0)

    def test_status_bits_masked(self):
        status = np.full(300 * 8, 3)
        block = make_ad9249_block({2: np.full(300, 77)}, status=(status, status))
        assert decode_block(block).waveforms[2].data.tolist() == [77] * 300


class TestTimestamp:
    """由状态位重建 65 MHz 时间戳"""

    def test_all_fields_set(self):
        words = np.full(300 * 8, 1 << 14, dtype=np.uint16)
        assert reconstruct_timestamp(words) == (4 ** 28 - 1) // 3

    def test_start_bit_clear_restarts_index(self):
        # 状态通道起始位为 0: 每帧只累加字段 0..6，已累加的值保留
        n_frames = 10
        words = np.array([0 if k % 8 == 7 else 1 << 14 for k in range(n_frames * 8)], dtype=np.uint16)
        assert reconstruct_timestamp(words) == n_frames * 5461

    def test_encoded_value(self):
        value = 0x123456789ABCD
        words = (timestamp_status(value, 300) << 14).astype(np.uint16)
        assert reconstruct_timestamp(words) == value

    def test_zero(self):
        assert reconstruct_timestamp(np.zeros(80, dtype=np.uint16)) == 0

    def test_clock_to_picoseconds(self):
        assert clock_to_picoseconds(65) == 1_000_000
        assert clock_to_picoseconds(0) == 0

    def test_decode_block_timestamps(self):
        value = 6_500_000
        block = make_ad9249_block(status=(timestamp_status(value), None))
        assert decode_block(block).timestamps == (clock_to_picoseconds(value), 0)


class TestSettings:
    """配置读取与校验"""

    def test_defaults(self):
        settings = AD9249Settings.from_config(Configuration())
        assert (settings.bl_start, settings.bl_end) == (150, 80)
        assert (settings.amp_start, settings.amp_end) == (170, 270)
        assert (settings.calib_range_min, settings.calib_range_max) == (0.0, 16384.0)
        assert settings.zero_suppression is True
        assert not settings.dump_enabled
        assert len(settings.calibrations) == 16
        assert all(c.formula == "x" for c in settings.calibrations)

    def test_calibration_per_pixel(self):
        settings = AD9249Settings.from_config(Configuration({"calibration_px10": "2*x"}))
        assert settings.calibrations[3].name == "calibration_px10"
        assert settings.calibrations[3](10) == 20.0
        assert settings.calibrations[0](10) == 10.0

    @pytest.mark.parametrize(
        "values",
        [
            {"blStart": 50, "blEnd": 50},
            {"blStart": 50, "blEnd": 80},
            {"ampStart": 200, "ampEnd": 200},
            {"ampStart": -1},
            {"calib_range_min": 10.0, "calib_range_max": 5.0},
            {"blStart": "many"},
        ],
    )
    def test_invalid(self, values):
        with pytest.raises(ConfigurationError):
            AD9249Settings.from_config(Configuration(values))

    def test_invalid_formula(self):
        with pytest.raises(CalibrationError) as excinfo:
            AD9249Settings.from_config(Configuration({"calibration_px22": "x +"}))
        assert excinfo.value.key == "calibration_px22"


class TestAmplitude:
    """幅度 = 峰值 - 基线，经刻度后截断"""

    @pytest.fixture
    def settings(self, scenario_config):
        return AD9249Settings.from_config(Configuration(scenario_config))

    def test_peak_minus_baseline(self, settings):
        samples = spike(300, 200, 600, baseline=100)
        assert extract_amplitude(samples, settings, settings.calibrations[0]) == 500.0

    def test_baseline_is_window_mean(self, settings):
        samples = np.zeros(300, dtype=np.int16)
        samples[100:150] = [90, 110] * 25
        samples[200] = 700
        assert extract_amplitude(samples, settings, settings.calibrations[0]) == 600.0

    def test_first_maximum_wins(self, settings):
        samples = np.zeros(300, dtype=np.int16)
        samples[180] = samples[220] = 500
        # 只落在第一个峰的基线窗口 [80, 130) 内
        samples[80:90] = 100
        assert extract_amplitude(samples, settings, settings.calibrations[0]) == 480.0

    def test_peak_too_early(self):
        settings = AD9249Settings.from_config(Configuration({"blStart": 200, "blEnd": 50}))
        calibration = settings.calibrations[0]
        assert extract_amplitude(spike(300, 180, 1000), settings, calibration) is None
        assert extract_amplitude(spike(300, 250, 1000), settings, calibration) == 1000.0

    def test_empty_window(self, settings):
        assert extract_amplitude(np.zeros(100, dtype=np.int16), settings, settings.calibrations[0]) is None

    def test_window_clipped_to_waveform(self, settings):
        assert extract_amplitude(spike(200, 190, 300), settings, settings.calibrations[0]) == 300.0

    def test_calibration_applied(self, scenario_config):
        settings = AD9249Settings.from_config(Configuration(dict(scenario_config, calibration_px10="2*x")))
        assert extract_amplitude(spike(300, 200, 1000), settings, settings.calibrations[3]) == 2000.0

    def test_clipped_above_range(self, scenario_config):
        settings = AD9249Settings.from_config(Configuration(dict(scenario_config, calib_range_max=500.0)))
        assert extract_amplitude(spike(300, 200, 1000), settings, settings.calibrations[0]) == 500.0

    def test_below_range_is_zero(self, scenario_config):
        settings = AD9249Settings.from_config(Configuration(dict(scenario_config, calib_range_min=10.0)))
        assert extract_amplitude(spike(300, 200, 5), settings, settings.calibrations[0]) == 0.0

    def test_negative_amplitude_is_zero(self, settings):
        samples = np.zeros(300, dtype=np.int16)
        samples[70:120] = 50
        assert extract_amplitude(samples, settings, settings.calibrations[0]) == 0.0

    @pytest.mark.parametrize(
        "value, expected",
        [(20000.0, 16384.0), (16384.0, 16384.0), (50.0, 50.0), (0.0, 0.0), (-5.0, 0.0)],
    )
    def test_clip_amplitude(self, value, expected):
        assert clip_amplitude(value, 0.0, 16384.0) == expected

    def test_clip_below_nonzero_minimum(self):
        assert clip_amplitude(5.0, 10.0, 100.0) == 0.0
        assert clip_amplitude(10.0, 10.0, 100.0) == 10.0


class TestAD9249Converter:
    """完整转换流程"""

    def test_single_spike_event(self, spike_block, scenario_config):
        converter = AD9249Converter()
        state = converter.new_state()
        converted, std = convert(converter, spike_block, scenario_config, state)

        assert converted is True
        assert std.detector_type == "AD9249"
        assert std.trigger_n == 0
        assert std.time_begin == std.time_end == 0
        assert std.num_planes == 1

        plane = std.get_plane(0)
        assert (plane.plane_id, plane.system, plane.sensor) == (0, "Caribou", "AD9249")
        assert (plane.x_size, plane.y_size) == (4, 4)
        assert plane.num_pixels == 1
        pixel = plane.pixels[0]
        assert (pixel.x, pixel.y, pixel.value) == (1, 0, 1000.0)
        assert pixel.timestamp == 0

    def test_without_zero_suppression(self, spike_block, scenario_config):
        converter = AD9249Converter()
        config = dict(scenario_config, zero_suppression=False)
        converted, std = convert(converter, spike_block, config, converter.new_state())

        assert converted
        plane = std.get_plane(0)
        assert plane.num_pixels == 16
        values = {(px.x, px.y): px.value for px in plane.pixels}
        assert values[(1, 0)] == 1000.0
        assert sum(values.values()) == 1000.0

    def test_clipped_to_zero_pixels_suppressed(self, scenario_config):
        # 基线高于峰值: 幅度为负，截断为 0
        samples = np.zeros(300, dtype=np.uint16)
        samples[70:120] = 50
        block = make_ad9249_block({3: samples})
        converter = AD9249Converter()

        converted, std = convert(converter, block, scenario_config, converter.new_state())
        assert converted
        assert std.get_plane(0).num_pixels == 0

        config = dict(scenario_config, zero_suppression=False)
        _, std = convert(converter, block, config, converter.new_state())
        values = {(px.x, px.y): px.value for px in std.get_plane(0).pixels}
        assert values[(1, 0)] == 0.0

    def test_skipped_channels_emit_no_pixel(self, spike_block):
        # 所有通道的峰值位置都小于 blStart，全部跳过
        converter = AD9249Converter()
        config = {"blStart": 260, "blEnd": 50, "zero_suppression": False}
        converted, std = convert(converter, spike_block, config, converter.new_state())
        assert converted
        assert std.get_plane(0).num_pixels == 0

    def test_truncated_event_dropped(self, scenario_config):
        converter = AD9249Converter()
        state = converter.new_state()
        block = make_ad9249_block(n_samples=300, burst_length=3)
        converted, std = convert(converter, block, scenario_config, state)

        assert converted is False
        assert std.num_planes == 0
        assert state.trigger_number == 0

    def test_event_without_blocks(self):
        converter = AD9249Converter()
        raw = RawEvent(0, "CaribouAD9249Event")
        std = StandardEvent.for_raw(raw)
        assert converter.convert(raw, std, {}, converter.new_state()) is False
        assert std.num_planes == 0

    def test_trigger_numbers_increment(self, spike_block, scenario_config):
        converter = AD9249Converter()
        state = converter.new_state()
        triggers = [convert(converter, spike_block, scenario_config, state, i)[1].trigger_n for i in range(3)]
        assert triggers == [0, 1, 2]
        assert state.trigger_number == 3

    def test_run_start_and_time(self, scenario_config):
        converter = AD9249Converter()
        state = converter.new_state()
        ticks = [650, 1300, 6500]
        events = []
        for i, value in enumerate(ticks):
            block = make_ad9249_block({3: spike(300, 200, 1000)}, status=(timestamp_status(value), None))
            converted, std = convert(converter, block, scenario_config, state, i)
            assert converted
            events.append(std)

        # 前两个事件 (trigger 0, 1) 都记录运行起始时间
        assert state.run_start_time == clock_to_picoseconds(1300)
        assert [ev.time_begin for ev in events] == [
            0,
            0,
            clock_to_picoseconds(6500) - clock_to_picoseconds(1300),
        ]
        assert events[2].time_end == events[2].time_begin
        # 像素时间戳是绝对时间
        assert events[2].get_plane(0).pixels[0].timestamp == clock_to_picoseconds(6500)

    def test_configuration_read_once(self, spike_block, scenario_config):
        converter = AD9249Converter()
        state = converter.new_state()
        convert(converter, spike_block, scenario_config, state)
        settings = state.settings
        assert settings.bl_start == 100

        convert(converter, spike_block, {"blStart": 120, "blEnd": 60}, state)
        assert state.settings is settings

        state.reset()
        convert(converter, spike_block, {"blStart": 120, "blEnd": 60}, state)
        assert state.settings.bl_start == 120
        assert state.trigger_number == 1

    def test_invalid_configuration_raises(self, spike_block):
        converter = AD9249Converter()
        with pytest.raises(ConfigurationError) as excinfo:
            convert(converter, spike_block, {"blStart": 10, "blEnd": 50}, converter.new_state(), event_number=7)
        assert excinfo.value.event_number == 7
        assert excinfo.value.detector_type == "CaribouAD9249Event"
        assert excinfo.value.key == "blEnd"

    def test_states_are_independent(self, spike_block, scenario_config):
        converter = AD9249Converter()
        first, second = converter.new_state(), converter.new_state()
        convert(converter, spike_block, scenario_config, first)
        convert(converter, spike_block, scenario_config, first)
        _, std = convert(converter, spike_block, scenario_config, second)
        assert std.trigger_n == 0
        assert first.trigger_number == 2

    def test_default_state(self, spike_block, scenario_config):
        converter = AD9249Converter()
        raw = RawEvent(0, "CaribouAD9249Event", (spike_block,))
        assert converter.convert(raw, StandardEvent.for_raw(raw), scenario_config)
        assert converter.default_state.trigger_number == 1


class TestWaveformDump:
    """诊断模式: 写出波形，不产生标准事件"""

    def test_dump_lines(self, tmp_path, spike_block, scenario_config):
        path = tmp_path / "waveforms.txt"
        converter = AD9249Converter()
        state = converter.new_state()
        config = dict(scenario_config, waveform_filename=str(path))

        converted, std = convert(converter, spike_block, config, state)
        assert converted is False
        assert std.num_planes == 0

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 16
        head, samples = lines[3].split(" : ")
        assert head == "0 3 1 0"
        values = [int(s) for s in samples.split()]
        assert len(values) == 300
        assert values[200] == 1000
        assert samples.endswith(" ")

    def test_dump_appends_and_counts_triggers(self, tmp_path, spike_block, scenario_config):
        path = tmp_path / "waveforms.txt"
        converter = AD9249Converter()
        state = converter.new_state()
        config = dict(scenario_config, waveform_filename=str(path))

        convert(converter, spike_block, config, state, 0)
        convert(converter, spike_block, config, state, 1)

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 32
        assert lines[16].startswith("1 0 1 2 : ")
        assert state.trigger_number == 2
