"""
Foundation 子包 - 基础工具与常量。
"""

from .constants import AD9249Layout, DecoderDefaults
from .utils import HASH_SEED, cstr2hash, exporter

__all__ = [
    "AD9249Layout",
    "DecoderDefaults",
    "HASH_SEED",
    "cstr2hash",
    "exporter",
]
