"""
Silence Cutter - Data Model
===========================
SampleBuffer, Region, ProcessResult และ Error ที่ใช้ร่วมกันทุก stage
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np


class AudioProcessingError(Exception):
    """Error ที่บอกได้ว่า stage ไหนล้มเหลว"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class UnsupportedConfigurationError(AudioProcessingError):
    """Options ไม่ถูกต้อง หรือไม่ได้เปิดฟีเจอร์ใดเลย"""


class EncoderUnavailableError(AudioProcessingError):
    """ไม่พบ encoder ภายนอก (เช่น ffmpeg / libmp3lame)"""


class EncodeError(AudioProcessingError):
    """Encoder ภายนอกทำงานผิดพลาดระหว่าง encode"""


@dataclass
class SampleBuffer:
    """
    Decoded multichannel audio
    ==========================
    channels: float32 array shape (channel_count, frame_count)
    sample_rate: Hz

    ทุก stage สร้าง buffer ใหม่เสมอ ไม่แก้ไข buffer ที่รับเข้ามา
    """
    channels: np.ndarray
    sample_rate: int

    def __post_init__(self):
        channels = np.asarray(self.channels, dtype=np.float32)
        if channels.ndim == 1:
            channels = channels[np.newaxis, :]
        if channels.ndim != 2 or channels.shape[0] == 0:
            raise ValueError(f"channels must be shaped (channels, frames), got {channels.shape}")
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        self.channels = channels
        self.sample_rate = int(self.sample_rate)

    @classmethod
    def from_channels(cls, channels: Sequence[np.ndarray], sample_rate: int) -> 'SampleBuffer':
        """สร้างจาก list ของ array ทีละ channel (ทุก channel ต้องยาวเท่ากัน)"""
        lengths = {len(c) for c in channels}
        if len(lengths) > 1:
            raise ValueError(f"channel lengths differ: {sorted(lengths)}")
        return cls(np.vstack([np.asarray(c, dtype=np.float32) for c in channels]), sample_rate)

    @classmethod
    def from_interleaved(cls, data: np.ndarray, sample_rate: int) -> 'SampleBuffer':
        """สร้างจาก array แบบ (frames,) หรือ (frames, channels) เช่นที่ soundfile คืนมา"""
        data = np.asarray(data, dtype=np.float32)
        if data.ndim == 1:
            return cls(data[np.newaxis, :], sample_rate)
        return cls(np.ascontiguousarray(data.T), sample_rate)

    @classmethod
    def silence(cls, frame_count: int, sample_rate: int, channel_count: int = 1) -> 'SampleBuffer':
        return cls(np.zeros((channel_count, frame_count), dtype=np.float32), sample_rate)

    @property
    def channel_count(self) -> int:
        return self.channels.shape[0]

    @property
    def frame_count(self) -> int:
        return self.channels.shape[1]

    @property
    def duration(self) -> float:
        return self.frame_count / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        return self.channels[index]

    def to_interleaved(self) -> np.ndarray:
        """(frames, channels) สำหรับเขียนไฟล์"""
        return np.ascontiguousarray(self.channels.T)

    def copy(self) -> 'SampleBuffer':
        return SampleBuffer(self.channels.copy(), self.sample_rate)


@dataclass
class Region:
    """ช่วง sample [start, end) ที่มีสถานะเงียบ/มีเสียงเหมือนกัน"""
    start: int
    end: int
    is_silence: bool

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class ProcessResult:
    """
    ผลลัพธ์ของการตัดช่วงเงียบ
    regions อ้างอิง sample index ของ buffer ต้นฉบับ (ใช้สำหรับวาด waveform)
    """
    buffer: SampleBuffer
    regions: List[Region] = field(default_factory=list)
    original_frame_count: Optional[int] = None

    @property
    def original_duration(self) -> float:
        frames = self.original_frame_count
        if frames is None:
            frames = self.buffer.frame_count
        return frames / self.buffer.sample_rate

    @property
    def new_duration(self) -> float:
        return self.buffer.duration

    @property
    def removed_seconds(self) -> float:
        return self.original_duration - self.new_duration

    @property
    def reduction_percent(self) -> float:
        if self.original_duration <= 0:
            return 0.0
        return (1.0 - self.new_duration / self.original_duration) * 100.0

    @property
    def silent_regions(self) -> List[Region]:
        return [r for r in self.regions if r.is_silence]


@dataclass(frozen=True)
class EncodedAudio:
    """Byte payload พร้อม MIME type"""
    data: bytes
    mime_type: str
    extension: str

    def __len__(self) -> int:
        return len(self.data)
