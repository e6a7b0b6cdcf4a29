import struct
from typing import Dict, Optional, Sequence

import numpy as np


def make_ad9249_block(
    waveforms: Optional[Dict[int, Sequence[int]]] = None,
    n_samples: int = 300,
    burst_length: int = 1,
    status: Sequence[Optional[Sequence[int]]] = (None, None),
) -> bytes:
    """Build a raw AD9249 data block.

    waveforms: {channel (0..15): samples}, missing channels are zero
    n_samples: samples per channel (sub-block size = n_samples * 8 * 2 bytes)
    burst_length: value written to the burst length field of both headers
    status: per ADC half, an array of n_samples * 8 two-bit status fields
        in word order (None means all zero)
    """
    mags = np.zeros((16, n_samples), dtype=np.uint16)
    for ch, samples in (waveforms or {}).items():
        samples = np.asarray(samples, dtype=np.uint16)
        mags[ch, : len(samples)] = samples

    parts = []
    for adc in range(2):
        # word k of the half belongs to local channel k % 8
        words = mags[adc * 8 : (adc + 1) * 8].T.reshape(-1)
        if status[adc] is not None:
            words = words | (np.asarray(status[adc], dtype=np.uint16) << 14)
        payload = words.astype("<u2").tobytes()
        parts.append(struct.pack("<HHI", 0, burst_length, len(payload)) + payload)
    return b"".join(parts)


def spike(n_samples: int, index: int, value: int, baseline: int = 0) -> np.ndarray:
    """Flat waveform with a single spike."""
    wf = np.full(n_samples, baseline, dtype=np.uint16)
    wf[index] = value
    return wf


def timestamp_status(value: int, n_samples: int = 300) -> np.ndarray:
    """Status stream encoding ``value`` in 28 two-bit fields.

    Fields go, least significant first, into the data channels (local
    channels 0..6); the status channel (local 7) carries the start bit in
    every frame so the field index never restarts.
    """
    status = np.zeros(n_samples * 8, dtype=np.uint16)
    field_index = 0
    for k in range(n_samples * 8):
        if k % 8 == 7:
            status[k] = 1
        elif field_index < 28:
            status[k] = (value >> (2 * field_index)) & 0x3
            field_index += 1
    return status
