"""
Silence Cutter - Adaptive Noise Gate
====================================
Envelope follower + expander curve ต่อ sample

- envelope ขึ้นด้วย attack coefficient, ลงด้วย release coefficient
- envelope >= threshold: gain = 1.0
- envelope <  threshold: gain = (envelope / threshold) ** n
  (n = 3 normal = ลดลงแบบนุ่มนวล, n = 12 aggressive = เกือบ mute)

State ของ envelope อยู่ใน GateState ที่ส่งต่อระหว่าง chunk ชัดเจน
ผลลัพธ์จึงไม่ขึ้นกับขนาด chunk และแต่ละ channel แยกกันได้
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from numba import jit

from audio_types import SampleBuffer
from constants import (
    GATE_ATTACK_SECONDS, GATE_CHUNK_SIZE, GATE_EXPONENT, GATE_RELEASE_SECONDS
)


# ============================================
# NUMBA-ACCELERATED KERNEL
# ============================================
@jit(nopython=True, cache=True)
def gate_kernel(samples, threshold, attack_coeff, release_coeff, exponent, envelope):
    """Gate หนึ่ง chunk คืน (output, envelope สุดท้าย)"""
    out = np.empty_like(samples)
    for i in range(len(samples)):
        x = samples[i]
        abs_x = abs(x)
        if abs_x > envelope:
            envelope = attack_coeff * envelope + (1.0 - attack_coeff) * abs_x
        else:
            envelope = release_coeff * envelope + (1.0 - release_coeff) * abs_x

        gain = 1.0
        if envelope < threshold:
            gain = (envelope / threshold) ** exponent
        out[i] = x * gain
    return out, envelope


@dataclass
class GateState:
    """Envelope follower state ของหนึ่ง channel"""
    envelope: float = 0.0


@dataclass(frozen=True)
class GateParams:
    threshold: float
    attack_coeff: float
    release_coeff: float
    exponent: int

    @classmethod
    def create(cls, threshold_db: float, sample_rate: int, aggressive: bool) -> 'GateParams':
        mode = 'aggressive' if aggressive else 'normal'
        return cls(
            threshold=10 ** (threshold_db / 20),
            attack_coeff=time_constant_coeff(sample_rate, GATE_ATTACK_SECONDS[mode]),
            release_coeff=time_constant_coeff(sample_rate, GATE_RELEASE_SECONDS[mode]),
            exponent=GATE_EXPONENT[mode],
        )


def time_constant_coeff(sample_rate: int, seconds: float) -> float:
    return math.exp(-1.0 / (sample_rate * seconds))


def gate_channel(
    samples: np.ndarray,
    params: GateParams,
    state: Optional[GateState] = None,
    chunk_size: int = GATE_CHUNK_SIZE,
    yield_func: Optional[Callable[[], None]] = None
) -> Tuple[np.ndarray, GateState]:
    """Gate หนึ่ง channel เป็น chunk โดยส่ง envelope ต่อระหว่าง chunk"""
    state = state or GateState()
    samples = np.ascontiguousarray(samples, dtype=np.float32)
    out = np.empty_like(samples)
    envelope = float(state.envelope)

    for start in range(0, len(samples), chunk_size):
        end = min(start + chunk_size, len(samples))
        out[start:end], envelope = gate_kernel(
            samples[start:end], params.threshold, params.attack_coeff,
            params.release_coeff, params.exponent, envelope
        )
        if yield_func:
            yield_func()

    return out, GateState(envelope)


def gate(
    buffer: SampleBuffer,
    threshold_db: float = -45.0,
    aggressive: bool = False,
    yield_func: Optional[Callable[[], None]] = None
) -> SampleBuffer:
    """
    Apply adaptive noise gate

    Args:
        buffer: audio input (ไม่ถูกแก้ไข)
        threshold_db: ระดับ gate (dB), -inf = ไม่ gate เลย
        aggressive: attack/release เร็วขึ้น และ curve ชันขึ้น
    """
    params = GateParams.create(threshold_db, buffer.sample_rate, aggressive)
    output = np.empty_like(buffer.channels)
    for c in range(buffer.channel_count):
        output[c], _ = gate_channel(buffer.channels[c], params, yield_func=yield_func)
    return SampleBuffer(output, buffer.sample_rate)
