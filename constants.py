"""
Silence Cutter - Constants and Enums
====================================
รวม Constants, Default Values, Enums และ Options ทั้งหมด
"""

from enum import Enum
from dataclasses import dataclass, field

from audio_types import UnsupportedConfigurationError

# --- Version Info ---
APP_VERSION = "1.2.0"
APP_NAME = "Silence Cutter"
APP_TITLE = f"{APP_NAME} - V{APP_VERSION}"

# --- Supported Formats ---
OUTPUT_FORMATS = ['wav', 'mp3']

MIME_TYPES = {
    'wav': 'audio/wav',
    'mp3': 'audio/mp3',
}

# --- Noise Floor Estimator ---
NOISE_FLOOR_WINDOW_SECONDS = 0.05   # 50ms RMS window
NOISE_FLOOR_HOP_SECONDS = 1.0       # one window per second of audio
NOISE_FLOOR_PERCENTILE = 0.1
DIGITAL_SILENCE_RMS = 1e-6
NOISE_FLOOR_FALLBACK_DB = -60.0

# --- Silence Segmenter / Splicer ---
SEGMENT_BLOCK_SIZE = 1024
SEGMENT_YIELD_EVERY_BLOCKS = 5000
SPLICE_PROGRESS_EVERY_REGIONS = 50

# --- Noise Gate ---
GATE_CHUNK_SIZE = 48000
GATE_ATTACK_SECONDS = {'normal': 0.01, 'aggressive': 0.001}
GATE_RELEASE_SECONDS = {'normal': 0.2, 'aggressive': 0.05}
GATE_EXPONENT = {'normal': 3, 'aggressive': 12}
GATE_OFFSET_DB = {'normal': 6.0, 'aggressive': 22.0}
# Empirical tuning bounds for the adaptive gate threshold
GATE_THRESHOLD_MIN_DB = -50.0
GATE_THRESHOLD_MAX_DB = -12.0

# --- Enhancement Chain ---
HIGHPASS_FREQ = {'normal': 85.0, 'aggressive': 160.0}
HIGHPASS_Q = 0.7
WARMTH_FREQ = 100.0
WARMTH_GAIN_DB = {'normal': 2.0, 'aggressive': 0.5}
MUD_CUT = {'freq': 350.0, 'gain_db': -2.5, 'q': 1.0}
DEESSER_BANDS = (
    {'name': 'sh', 'freq': 5500.0, 'gain_db': -5.0, 'q': 2.5},
    {'name': 'ss', 'freq': 7500.0, 'gain_db': -7.0, 'q': 3.0},
    {'name': 'zz', 'freq': 10000.0, 'gain_db': -8.0, 'q': 2.0},
)
LOWPASS_FREQ = 6500.0
LOWPASS_Q = 0.5
HIGH_SHELF_FREQ = 12000.0
HIGH_SHELF_GAIN_DB = -6.0
SHELF_Q = 0.7071

COMPRESSOR_THRESHOLD_DB = -24.0
COMPRESSOR_RATIO = 3.5
COMPRESSOR_KNEE_DB = 15.0
COMPRESSOR_ATTACK_SECONDS = 0.002
COMPRESSOR_RELEASE_SECONDS = 0.15

MAKEUP_GAIN = 1.3

# --- Encoders ---
PCM_CHUNK_FRAMES = 4096
MP3_FRAME_SIZE = 1152
MP3_BLOCK_FRAMES = MP3_FRAME_SIZE * 10
DEFAULT_MP3_BITRATE = 128

# --- Threshold slider bounds ---
THRESHOLD_MIN_DB = -60.0
THRESHOLD_MAX_DB = -10.0


class SilenceMode(Enum):
    """ระดับการตัดช่วงเงียบ (สัดส่วนที่ตัดออก)"""
    BALANCED = 0.7
    FAST = 0.8
    MAX = 1.0


@dataclass(frozen=True)
class SilenceOptions:
    """การตั้งค่าการตัดช่วงเงียบ"""
    remove_ratio: float = SilenceMode.BALANCED.value
    threshold_db: float = -35.0
    min_silence_duration: float = 0.1
    padding: float = 0.05

    def validate(self) -> None:
        if not 0.0 <= self.remove_ratio <= 1.0:
            raise UnsupportedConfigurationError(
                f"remove_ratio must be within [0, 1], got {self.remove_ratio}", stage="silence"
            )
        if self.threshold_db > 0:
            raise UnsupportedConfigurationError(
                f"threshold_db must be negative, got {self.threshold_db}", stage="silence"
            )
        if self.min_silence_duration < 0 or self.padding < 0:
            raise UnsupportedConfigurationError(
                "min_silence_duration and padding must be >= 0", stage="silence"
            )


@dataclass(frozen=True)
class EnhanceOptions:
    """การตั้งค่า Voice Enhancer"""
    aggressive_gate: bool = False

    @property
    def mode(self) -> str:
        return 'aggressive' if self.aggressive_gate else 'normal'


@dataclass
class OutputSettings:
    """การตั้งค่า Output"""
    format: str = 'wav'
    mp3_bitrate: int = DEFAULT_MP3_BITRATE


@dataclass
class ProcessingConfig:
    """การตั้งค่าทั้งหมดรวมกัน"""
    silence_enabled: bool = True
    silence: SilenceOptions = field(default_factory=SilenceOptions)
    enhance_enabled: bool = False
    enhance: EnhanceOptions = field(default_factory=EnhanceOptions)
    output: OutputSettings = field(default_factory=OutputSettings)


# --- Default Presets ---
DEFAULT_PRESETS = {
    'default': {
        'name': 'Default',
        'description': 'ตัดช่วงเงียบ 70% (Balanced) ไม่ปรับแต่งเสียง',
        'config': ProcessingConfig()
    },
    'podcast': {
        'name': 'Podcast',
        'description': 'ตัดช่วงเงียบ + Voice Enhancer แบบธรรมชาติ',
        'config': ProcessingConfig(
            silence=SilenceOptions(remove_ratio=SilenceMode.BALANCED.value),
            enhance_enabled=True,
        )
    },
    'fast': {
        'name': 'Fast Paced',
        'description': 'ตัดช่วงเงียบ 80% สำหรับคลิปสั้น',
        'config': ProcessingConfig(
            silence=SilenceOptions(remove_ratio=SilenceMode.FAST.value),
            output=OutputSettings(format='mp3'),
        )
    },
    'aggressive': {
        'name': 'Aggressive Clean',
        'description': 'ตัดช่วงเงียบทั้งหมด + Gate แรงสุด (อาจมีเสียงขาดช่วง)',
        'config': ProcessingConfig(
            silence=SilenceOptions(remove_ratio=SilenceMode.MAX.value),
            enhance_enabled=True,
            enhance=EnhanceOptions(aggressive_gate=True),
        )
    }
}
