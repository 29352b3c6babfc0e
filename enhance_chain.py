"""
Silence Cutter - Voice Enhancer Chain
=====================================
Chain ตายตัว (ลำดับสำคัญ: gate ต้องมาก่อน EQ/makeup gain
ไม่งั้นช่วงที่ gate แล้วจะถูกขยายกลับขึ้นมา)

1. Adaptive Noise Gate (threshold = noise floor + 6/22 dB, clamp [-50, -12])
2. High-pass 85 Hz (normal) / 160 Hz (aggressive)
3. Low-shelf warmth 100 Hz: +2.0 dB / +0.5 dB
4. Mud cut 350 Hz -2.5 dB
5. De-esser 5.5 kHz / 7.5 kHz / 10 kHz
6. High-shelf 12 kHz -6 dB (normal) / Low-pass 6.5 kHz (aggressive)
7. Compressor -24 dB, 3.5:1, knee 15 dB, 2ms / 150ms
8. Makeup gain x1.3
"""

import math
from typing import Callable, List, Optional

import numpy as np
from numba import jit
from pedalboard import Gain, HighShelfFilter, LowShelfFilter, PeakFilter
from scipy import signal as scipy_signal

from audio_types import SampleBuffer
from constants import (
    COMPRESSOR_ATTACK_SECONDS, COMPRESSOR_KNEE_DB, COMPRESSOR_RATIO,
    COMPRESSOR_RELEASE_SECONDS, COMPRESSOR_THRESHOLD_DB, DEESSER_BANDS,
    GATE_OFFSET_DB, GATE_THRESHOLD_MAX_DB, GATE_THRESHOLD_MIN_DB,
    HIGH_SHELF_FREQ, HIGH_SHELF_GAIN_DB, HIGHPASS_FREQ, HIGHPASS_Q,
    LOWPASS_FREQ, LOWPASS_Q, MAKEUP_GAIN, MUD_CUT, SHELF_Q, WARMTH_FREQ,
    WARMTH_GAIN_DB, EnhanceOptions
)
from noise_gate import gate, time_constant_coeff
from silence_remover import estimate_noise_floor


# ============================================
# COMPRESSOR (NUMBA)
# ============================================
@jit(nopython=True, cache=True)
def compressor_kernel(channels, threshold_db, ratio, knee_db, attack_coeff, release_coeff):
    """
    Feed-forward compressor, soft knee, detector เชื่อมทุก channel (peak)
    gain smoothing ทำใน dB domain
    """
    n_channels, n_frames = channels.shape
    out = np.empty_like(channels)
    slope = 1.0 / ratio - 1.0
    gain_db = 0.0

    for i in range(n_frames):
        peak = 0.0
        for c in range(n_channels):
            a = abs(channels[c, i])
            if a > peak:
                peak = a

        if peak > 1e-10:
            level_db = 20.0 * math.log10(peak)
        else:
            level_db = -200.0

        over = level_db - threshold_db
        if knee_db > 0.0 and 2.0 * abs(over) <= knee_db:
            target = slope * (over + knee_db / 2.0) ** 2 / (2.0 * knee_db)
        elif over > 0.0:
            target = slope * over
        else:
            target = 0.0

        # target < gain_db = ต้องลดเสียงเพิ่ม -> attack
        if target < gain_db:
            coeff = attack_coeff
        else:
            coeff = release_coeff
        gain_db = coeff * gain_db + (1.0 - coeff) * target

        g = 10.0 ** (gain_db / 20.0)
        for c in range(n_channels):
            out[c, i] = channels[c, i] * g

    return out


# ============================================
# CHAIN STAGES
# ============================================
class Stage:
    """หนึ่งขั้นของ chain: รับ/คืน array (channels, frames)"""

    def __init__(self, name: str):
        self.name = name

    def process(self, channels: np.ndarray, sr: int) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class BiquadStage(Stage):
    """
    Second-order high-pass / low-pass (RBJ cookbook)
    Q ตีความเป็น dB เหมือน BiquadFilterNode ของ Web Audio
    """

    def __init__(self, name: str, kind: str, freq: float, q_db: float):
        super().__init__(name)
        self.kind = kind
        self.freq = freq
        self.q_db = q_db

    def sos(self, sr: int) -> np.ndarray:
        w0 = 2.0 * math.pi * self.freq / sr
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * 10 ** (self.q_db / 20))

        if self.kind == 'highpass':
            b = [(1 + cos_w0) / 2, -(1 + cos_w0), (1 + cos_w0) / 2]
        elif self.kind == 'lowpass':
            b = [(1 - cos_w0) / 2, 1 - cos_w0, (1 - cos_w0) / 2]
        else:
            raise ValueError(f"Unknown biquad type: {self.kind}")
        a = [1 + alpha, -2 * cos_w0, 1 - alpha]

        return np.array([[b[0] / a[0], b[1] / a[0], b[2] / a[0], 1.0, a[1] / a[0], a[2] / a[0]]])

    def process(self, channels: np.ndarray, sr: int) -> np.ndarray:
        return scipy_signal.sosfilt(self.sos(sr), channels, axis=-1).astype(np.float32)


class PedalboardStage(Stage):
    """Wrap pedalboard plugin, ประมวลผลทีละ channel (mono array)"""

    def __init__(self, name: str, plugin, freq: Optional[float] = None):
        super().__init__(name)
        self.plugin = plugin
        self.freq = freq

    def process(self, channels: np.ndarray, sr: int) -> np.ndarray:
        out = np.empty_like(channels)
        for c in range(channels.shape[0]):
            processed = self.plugin(np.ascontiguousarray(channels[c]), sr)
            out[c] = np.asarray(processed, dtype=np.float32).reshape(-1)
        return out


class CompressorStage(Stage):
    def __init__(
        self,
        name: str = 'compressor',
        threshold_db: float = COMPRESSOR_THRESHOLD_DB,
        ratio: float = COMPRESSOR_RATIO,
        knee_db: float = COMPRESSOR_KNEE_DB,
        attack: float = COMPRESSOR_ATTACK_SECONDS,
        release: float = COMPRESSOR_RELEASE_SECONDS
    ):
        super().__init__(name)
        self.threshold_db = threshold_db
        self.ratio = ratio
        self.knee_db = knee_db
        self.attack = attack
        self.release = release

    def process(self, channels: np.ndarray, sr: int) -> np.ndarray:
        return compressor_kernel(
            np.ascontiguousarray(channels, dtype=np.float32),
            self.threshold_db, self.ratio, self.knee_db,
            time_constant_coeff(sr, self.attack),
            time_constant_coeff(sr, self.release)
        )


def gate_threshold_for(noise_floor_db: float, aggressive: bool) -> float:
    """Threshold = noise floor + offset แล้ว clamp กันไม่ให้ gate เสียงพูดจริง"""
    offset = GATE_OFFSET_DB['aggressive' if aggressive else 'normal']
    return max(GATE_THRESHOLD_MIN_DB, min(GATE_THRESHOLD_MAX_DB, noise_floor_db + offset))


def build_chain(options: EnhanceOptions) -> List[Stage]:
    """สร้าง EQ/dynamics stages (หลัง gate) ตามลำดับที่กำหนด"""
    mode = options.mode
    stages: List[Stage] = [
        BiquadStage('highpass', 'highpass', HIGHPASS_FREQ[mode], HIGHPASS_Q),
        PedalboardStage('warmth', LowShelfFilter(
            cutoff_frequency_hz=WARMTH_FREQ, gain_db=WARMTH_GAIN_DB[mode], q=SHELF_Q
        ), freq=WARMTH_FREQ),
        PedalboardStage('mud_cut', PeakFilter(
            cutoff_frequency_hz=MUD_CUT['freq'], gain_db=MUD_CUT['gain_db'], q=MUD_CUT['q']
        ), freq=MUD_CUT['freq']),
    ]

    for band in DEESSER_BANDS:
        stages.append(PedalboardStage(f"deesser_{band['name']}", PeakFilter(
            cutoff_frequency_hz=band['freq'], gain_db=band['gain_db'], q=band['q']
        ), freq=band['freq']))

    if options.aggressive_gate:
        stages.append(BiquadStage('lowpass', 'lowpass', LOWPASS_FREQ, LOWPASS_Q))
    else:
        stages.append(PedalboardStage('high_shelf', HighShelfFilter(
            cutoff_frequency_hz=HIGH_SHELF_FREQ, gain_db=HIGH_SHELF_GAIN_DB, q=SHELF_Q
        ), freq=HIGH_SHELF_FREQ))

    stages.append(CompressorStage())
    stages.append(PedalboardStage('makeup_gain', Gain(gain_db=20 * math.log10(MAKEUP_GAIN))))
    return stages


def stage_supported(stage: Stage, sr: int) -> bool:
    """Filter ที่ความถี่ >= Nyquist ออกแบบ biquad ไม่ได้"""
    freq = getattr(stage, 'freq', None)
    return freq is None or freq < sr / 2


def enhance(
    buffer: SampleBuffer,
    options: Optional[EnhanceOptions] = None,
    log_func: Optional[Callable[[str], None]] = None,
    yield_func: Optional[Callable[[], None]] = None
) -> SampleBuffer:
    """
    Voice Enhancer: gate -> EQ -> de-esser -> compressor -> makeup gain

    แต่ละ stage ประมวลผลทั้ง buffer ให้เสร็จก่อน stage ถัดไป
    ความยาว/จำนวน channel ของ output เท่ากับ input
    """
    log = log_func or (lambda x: None)
    options = options or EnhanceOptions()
    sr = buffer.sample_rate

    if buffer.frame_count == 0:
        return buffer.copy()

    noise_floor = estimate_noise_floor(buffer)
    threshold = gate_threshold_for(noise_floor, options.aggressive_gate)
    log(f"🎚️ Noise Floor: {noise_floor:.1f}dB, Gate: {threshold:.1f}dB ({options.mode})")

    gated = gate(buffer, threshold, options.aggressive_gate, yield_func=yield_func)
    data = gated.channels

    for stage in build_chain(options):
        if not stage_supported(stage, sr):
            log(f"   ⏭️ Skip {stage.name} ({stage.freq:.0f}Hz >= Nyquist)")
            continue
        data = stage.process(data, sr)
        if yield_func:
            yield_func()

    log("   ✓ Voice Enhancer เสร็จสิ้น")
    return SampleBuffer(data, sr)
