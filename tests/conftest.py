import pytest

from stdevent.core.model import RawEvent
from stdevent.formats import ConverterRegistry, register_builtin_converters
from tests.utils import make_ad9249_block, spike

# 与端到端场景一致的窗口配置
SCENARIO_CONFIG = {
    "blStart": 100,
    "blEnd": 50,
    "ampStart": 170,
    "ampEnd": 270,
}


@pytest.fixture
def scenario_config():
    """Window configuration of the single-spike scenario."""
    return dict(SCENARIO_CONFIG)


@pytest.fixture
def registry():
    """A fresh registry holding only the built-in converters."""
    reg = ConverterRegistry()
    register_builtin_converters(reg)
    return reg


@pytest.fixture
def make_raw_event():
    """Factory fixture wrapping a block into a CaribouAD9249Event raw event.

    Usage:
        raw = make_raw_event(block, event_number=3)
    """

    def _make(block: bytes, event_number: int = 0):
        return RawEvent(event_number=event_number, detector_type="CaribouAD9249Event", blocks=(block,))

    return _make


@pytest.fixture
def spike_block():
    """Block with channel 3 holding a 1000-count spike at sample 200."""
    return make_ad9249_block({3: spike(300, 200, 1000)}, n_samples=300, burst_length=1)
