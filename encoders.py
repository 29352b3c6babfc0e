"""
Silence Cutter - Encoders
=========================
แปลง SampleBuffer (float) เป็น byte payload

- WAV: PCM 16-bit little-endian interleaved, header 44 bytes
- MP3: ส่ง PCM 16-bit ให้ ffmpeg (libmp3lame) ทีละ block แล้ว flush
"""

import io
import os
import subprocess
import threading
import wave
from typing import Callable, List, Optional

import numpy as np

from audio_types import EncodedAudio, EncodeError, EncoderUnavailableError, SampleBuffer
from constants import DEFAULT_MP3_BITRATE, MIME_TYPES, MP3_BLOCK_FRAMES, PCM_CHUNK_FRAMES


def float_to_int16(samples: np.ndarray) -> np.ndarray:
    """
    Clamp [-1, 1] แล้ว scale แบบไม่สมมาตร
    ค่าลบ x 32768, ค่าบวก x 32767 (ตัดทศนิยมเข้าหาศูนย์)
    """
    clipped = np.clip(samples.astype(np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype(np.int16)


# ============================================
# PCM / WAV
# ============================================
def encode_pcm(
    buffer: SampleBuffer,
    yield_func: Optional[Callable[[], None]] = None,
    chunk_frames: int = PCM_CHUNK_FRAMES
) -> EncodedAudio:
    """Encode เป็น WAV 16-bit (RIFF header 44 bytes)"""
    out = io.BytesIO()
    with wave.open(out, 'wb') as wav_file:
        wav_file.setnchannels(buffer.channel_count)
        wav_file.setsampwidth(2)
        wav_file.setframerate(buffer.sample_rate)
        wav_file.setnframes(buffer.frame_count)

        for start in range(0, buffer.frame_count, chunk_frames):
            end = min(start + chunk_frames, buffer.frame_count)
            # (frames, channels) -> L R L R ...
            interleaved = float_to_int16(buffer.channels[:, start:end].T)
            wav_file.writeframesraw(interleaved.astype('<i2').tobytes())
            if yield_func:
                yield_func()

    return EncodedAudio(out.getvalue(), MIME_TYPES['wav'], 'wav')


# ============================================
# MP3 (FFMPEG)
# ============================================
def check_ffmpeg() -> bool:
    """ตรวจสอบว่ามี FFmpeg ติดตั้งหรือไม่"""
    try:
        creation_flags = 0x08000000 if os.name == 'nt' else 0
        result = subprocess.run(
            ['ffmpeg', '-version'],
            capture_output=True,
            creationflags=creation_flags
        )
        return result.returncode == 0
    except FileNotFoundError:
        return False


class FfmpegMp3Encoder:
    """
    Frame encoder แบบ streaming ผ่าน ffmpeg
    =======================================
    encode_buffer() เขียน PCM เข้า stdin, thread แยกอ่าน MP3 จาก stdout
    และอ่าน stderr ทิ้งไว้ใน buffer (ไม่ให้ pipe เต็มจน ffmpeg ค้าง)
    flush() ปิด stdin แล้วรอให้ ffmpeg เขียนข้อมูลที่เหลือออกมา
    close() หยุด ffmpeg ที่ยังทำงานอยู่และปิด pipe ทั้งหมด (เรียกซ้ำได้)
    """

    def __init__(self, channels: int, sample_rate: int, bitrate: int = DEFAULT_MP3_BITRATE):
        if not check_ffmpeg():
            raise EncoderUnavailableError("ไม่พบ FFmpeg กรุณาติดตั้ง (ต้องมี libmp3lame)", stage="encode")

        self.channels = channels
        self.sample_rate = sample_rate
        self.bitrate = bitrate
        self._chunks: List[bytes] = []
        self._errors: List[bytes] = []
        self._lock = threading.Lock()

        creation_flags = 0x08000000 if os.name == 'nt' else 0
        command = [
            'ffmpeg', '-v', 'error',
            '-f', 's16le',
            '-ar', str(sample_rate),
            '-ac', str(channels),
            '-i', 'pipe:0',
            '-c:a', 'libmp3lame',
            '-b:a', f'{bitrate}k',
            '-f', 'mp3',
            'pipe:1'
        ]
        self._process = subprocess.Popen(
            command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            creationflags=creation_flags
        )
        self._reader = threading.Thread(
            target=self._read_pipe, args=(self._process.stdout, self._chunks), daemon=True
        )
        self._error_reader = threading.Thread(
            target=self._read_pipe, args=(self._process.stderr, self._errors), daemon=True
        )
        self._reader.start()
        self._error_reader.start()

    def __enter__(self) -> 'FfmpegMp3Encoder':
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    def _read_pipe(self, pipe, sink: List[bytes]) -> None:
        while True:
            data = pipe.read(65536)
            if not data:
                break
            with self._lock:
                sink.append(data)

    def _drain(self) -> bytes:
        with self._lock:
            data = b''.join(self._chunks)
            self._chunks.clear()
        return data

    def _stderr(self) -> str:
        with self._lock:
            data = b''.join(self._errors)
        return data.decode(errors='replace').strip()

    def encode_buffer(self, left: np.ndarray, right: Optional[np.ndarray] = None) -> bytes:
        if self.channels == 1:
            pcm = np.asarray(left, dtype='<i2')
        else:
            pcm = np.column_stack([left, left if right is None else right]).astype('<i2')
        try:
            self._process.stdin.write(pcm.tobytes())
        except BrokenPipeError as e:
            self.close()
            raise EncodeError(f"FFmpeg encode error: {self._stderr()}", stage="encode") from e
        return self._drain()

    def flush(self) -> bytes:
        try:
            self._process.stdin.close()
        except BrokenPipeError:
            # ffmpeg ปิด input ไปก่อนแล้ว ดู exit code ด้านล่าง
            pass
        self._reader.join()
        self._error_reader.join()
        returncode = self._process.wait()
        if returncode != 0:
            raise EncodeError(f"FFmpeg encode error ({returncode}): {self._stderr()}", stage="encode")
        return self._drain()

    def close(self) -> None:
        if self._process.poll() is None:
            self._process.kill()
        self._process.wait()
        self._reader.join()
        self._error_reader.join()
        for pipe in (self._process.stdin, self._process.stdout, self._process.stderr):
            if pipe.closed:
                continue
            try:
                pipe.close()
            except BrokenPipeError:
                # data ที่ค้างใน buffer ของ stdin ส่งไม่ได้แล้ว
                pass


def encode_lossy(
    buffer: SampleBuffer,
    bitrate: int = DEFAULT_MP3_BITRATE,
    encoder_factory: Optional[Callable[[int, int, int], object]] = None,
    yield_func: Optional[Callable[[], None]] = None,
    block_frames: int = MP3_BLOCK_FRAMES
) -> EncodedAudio:
    """
    Encode เป็น MP3

    Args:
        encoder_factory: (channels, sample_rate, bitrate) -> encoder ที่มี
            encode_buffer(left, right) และ flush() (default: FfmpegMp3Encoder)
            ถ้า encoder มี close() จะถูกเรียกเสมอ แม้ encode ล้มเหลว

    Raises:
        EncoderUnavailableError: ไม่มี encoder (ก่อนเริ่มแปลง sample ใดๆ)
        EncodeError: encoder ล้มเหลวระหว่างทาง
    """
    factory = encoder_factory or FfmpegMp3Encoder
    channels = min(buffer.channel_count, 2)
    encoder = factory(channels, buffer.sample_rate, bitrate)

    try:
        left = buffer.channel(0)
        right = buffer.channel(1) if buffer.channel_count > 1 else left
        takes_two = getattr(encoder, 'channels', channels) == 2

        mp3_data = []
        for start in range(0, buffer.frame_count, block_frames):
            end = min(start + block_frames, buffer.frame_count)
            left_chunk = float_to_int16(left[start:end])
            if takes_two:
                right_chunk = left_chunk if right is left else float_to_int16(right[start:end])
                mp3buf = encoder.encode_buffer(left_chunk, right_chunk)
            else:
                mp3buf = encoder.encode_buffer(left_chunk)
            if len(mp3buf) > 0:
                mp3_data.append(bytes(mp3buf))
            if yield_func:
                yield_func()

        mp3buf = encoder.flush()
        if len(mp3buf) > 0:
            mp3_data.append(bytes(mp3buf))
    finally:
        close = getattr(encoder, 'close', None)
        if close is not None:
            close()

    return EncodedAudio(b''.join(mp3_data), MIME_TYPES['mp3'], 'mp3')
