"""
Silence Cutter - Silence Remover
================================
วัด noise floor, แบ่ง region เงียบ/มีเสียง, เผื่อ padding รอบคำพูด
แล้วตัดช่วงเงียบออกตามสัดส่วนที่กำหนด

Pipeline:
1. segment()        -> block ละ 1024 samples, peak < threshold = เงียบ
2. apply_padding()  -> ขยาย region ที่มีเสียงเข้าไปในช่วงเงียบข้างเคียง
3. splice()         -> เก็บเฉพาะส่วนต้นของช่วงเงียบที่ยาวพอ แล้วต่อ buffer ใหม่
"""

import math
from typing import Callable, List, Optional, Tuple

import numpy as np

from audio_types import ProcessResult, Region, SampleBuffer
from constants import (
    DIGITAL_SILENCE_RMS, NOISE_FLOOR_FALLBACK_DB, NOISE_FLOOR_HOP_SECONDS,
    NOISE_FLOOR_PERCENTILE, NOISE_FLOOR_WINDOW_SECONDS, SEGMENT_BLOCK_SIZE,
    SEGMENT_YIELD_EVERY_BLOCKS, SPLICE_PROGRESS_EVERY_REGIONS, SilenceOptions
)


def db_to_linear(db: float) -> float:
    return 10 ** (db / 20)


def estimate_noise_floor(buffer: SampleBuffer) -> float:
    """
    ประเมิน noise floor (dB) จาก channel แรก

    ดู window 50ms หนึ่งช่วงต่อทุก 1 วินาที แล้วใช้ค่า RMS ที่ percentile 10
    แทนค่าต่ำสุด เพื่อไม่ให้ช่วง dropout ช่วงเดียวดึงค่าลง
    """
    data = buffer.channel(0)
    sr = buffer.sample_rate
    window_size = max(1, int(sr * NOISE_FLOOR_WINDOW_SECONDS))
    hop_size = max(1, int(sr * NOISE_FLOOR_HOP_SECONDS))

    rms_values = []
    for start in range(0, len(data), hop_size):
        window = data[start:start + window_size].astype(np.float64)
        rms = np.sqrt(np.mean(window ** 2))
        # ข้าม digital silence ไม่งั้น log10 จะเป็น -inf
        if rms > DIGITAL_SILENCE_RMS:
            rms_values.append(rms)

    if not rms_values:
        return NOISE_FLOOR_FALLBACK_DB

    rms_values.sort()
    p10_index = int(math.floor(len(rms_values) * NOISE_FLOOR_PERCENTILE))
    return float(20 * np.log10(rms_values[p10_index]))


def classify_blocks(
    buffer: SampleBuffer,
    threshold_db: float,
    block_size: int = SEGMENT_BLOCK_SIZE,
    yield_func: Optional[Callable[[], None]] = None
) -> np.ndarray:
    """คืน bool array ต่อ block: True = peak ของทุก channel ต่ำกว่า threshold"""
    threshold_linear = db_to_linear(threshold_db)
    length = buffer.frame_count
    n_blocks = int(math.ceil(length / block_size))
    is_silent = np.zeros(n_blocks, dtype=bool)
    if n_blocks == 0:
        return is_silent

    # Pad ให้หารด้วย block_size ลงตัว (ศูนย์ไม่เพิ่มค่า peak)
    pad_len = n_blocks * block_size - length
    data = np.abs(buffer.channels)
    if pad_len:
        data = np.pad(data, ((0, 0), (0, pad_len)))
    blocks = data.reshape(buffer.channel_count, n_blocks, block_size)

    # ประมวลผลทีละชุดของ block เพื่อคืน control ให้ host ระหว่างทาง
    for start in range(0, n_blocks, SEGMENT_YIELD_EVERY_BLOCKS):
        end = min(start + SEGMENT_YIELD_EVERY_BLOCKS, n_blocks)
        max_amps = blocks[:, start:end, :].max(axis=(0, 2))
        is_silent[start:end] = max_amps < threshold_linear
        if yield_func:
            yield_func()

    return is_silent


def segment(
    buffer: SampleBuffer,
    threshold_db: float,
    block_size: int = SEGMENT_BLOCK_SIZE,
    yield_func: Optional[Callable[[], None]] = None
) -> List[Region]:
    """
    แบ่ง buffer เป็น region ต่อเนื่องที่ครอบคลุม [0, frame_count) พอดี

    Run-length encoding ของผล classify_blocks (ไม่มี hysteresis)
    """
    is_silent = classify_blocks(buffer, threshold_db, block_size, yield_func)
    if len(is_silent) == 0:
        return []

    regions = []
    current_start = 0
    current_is_silence = bool(is_silent[0])
    for b in range(1, len(is_silent)):
        block_is_silence = bool(is_silent[b])
        if block_is_silence != current_is_silence:
            regions.append(Region(current_start * block_size, b * block_size, current_is_silence))
            current_start = b
            current_is_silence = block_is_silence

    # region สุดท้ายจบที่ความยาวจริงของ buffer
    regions.append(Region(current_start * block_size, buffer.frame_count, current_is_silence))
    return regions


def apply_padding(regions: List[Region], padding_samples: int) -> List[Region]:
    """
    เผื่อ padding รอบคำพูด (แก้ไข regions ในที่)

    Forward sweep: ย้ายต้นช่วงเงียบไปเป็นหางของช่วงเสียงก่อนหน้า
    Backward sweep: ย้ายท้ายช่วงเงียบไปเป็นหัวของช่วงเสียงถัดไป
    การย้ายแต่ละครั้งไม่เกินความยาวปัจจุบันของช่วงเงียบ
    """
    if padding_samples <= 0:
        return regions

    for i in range(len(regions) - 1):
        current, nxt = regions[i], regions[i + 1]
        if not current.is_silence and nxt.is_silence:
            shift = min(padding_samples, nxt.length)
            current.end += shift
            nxt.start += shift

    for i in range(len(regions) - 1, 0, -1):
        current, prev = regions[i], regions[i - 1]
        if not current.is_silence and prev.is_silence:
            shift = min(padding_samples, prev.length)
            current.start -= shift
            prev.end -= shift

    return regions


def keep_ratio_for(region: Region, remove_ratio: float, min_silence_samples: int) -> float:
    if region.is_silence and region.length >= min_silence_samples:
        return 1.0 - remove_ratio
    return 1.0


def splice(
    buffer: SampleBuffer,
    regions: List[Region],
    remove_ratio: float,
    min_silence_samples: int,
    progress_func: Optional[Callable[[float], None]] = None,
    yield_func: Optional[Callable[[], None]] = None
) -> Tuple[SampleBuffer, List[Region]]:
    """
    ต่อ buffer ใหม่จาก region ที่เหลือ

    ช่วงเงียบที่ยาว >= min_silence_samples เก็บไว้แค่ floor(length * (1 - remove_ratio))
    samples แรก ช่วงอื่นเก็บทั้งหมด region ว่างถูกข้าม

    Returns:
        (buffer ใหม่, regions ที่ไม่ว่าง)
    """
    progress = progress_func or (lambda x: None)

    directives = []
    output_count = 0
    for r in regions:
        if r.length <= 0:
            continue
        keep_samples = int(math.floor(r.length * keep_ratio_for(r, remove_ratio, min_silence_samples)))
        directives.append((r, keep_samples))
        output_count += keep_samples

    # จอง output ครั้งเดียว
    output = np.empty((buffer.channel_count, output_count), dtype=np.float32)

    for c in range(buffer.channel_count):
        input_data = buffer.channels[c]
        output_data = output[c]
        write_cursor = 0
        for i, (r, keep_samples) in enumerate(directives):
            output_data[write_cursor:write_cursor + keep_samples] = input_data[r.start:r.start + keep_samples]
            write_cursor += keep_samples

            if c == 0 and i % SPLICE_PROGRESS_EVERY_REGIONS == 0:
                progress(i / len(regions))
                if yield_func:
                    yield_func()

    progress(1.0)
    used_regions = [Region(r.start, r.end, r.is_silence) for r, _ in directives]
    return SampleBuffer(output, buffer.sample_rate), used_regions


def remove_silence(
    buffer: SampleBuffer,
    options: SilenceOptions,
    progress_func: Optional[Callable[[float], None]] = None,
    yield_func: Optional[Callable[[], None]] = None,
    log_func: Optional[Callable[[str], None]] = None
) -> ProcessResult:
    """
    ตัดช่วงเงียบ (segment -> padding -> splice)

    Args:
        buffer: audio ที่ decode แล้ว
        options: SilenceOptions
        progress_func: รับค่า 0.0-1.0 (ไม่ลดลง)
        yield_func: เรียกระหว่าง chunk เพื่อคืน control ให้ host
        log_func: function สำหรับ log ข้อความ

    Returns:
        ProcessResult ที่ regions อ้างอิง index ของ buffer ต้นฉบับ
    """
    log = log_func or (lambda x: None)
    options.validate()

    sr = buffer.sample_rate
    min_silence_samples = int(math.floor(options.min_silence_duration * sr))
    padding_samples = int(math.floor(options.padding * sr))

    log(f"✂️ กำลังตัดช่วงเงียบ (Threshold: {options.threshold_db:.1f}dB, Remove: {options.remove_ratio:.0%})...")

    regions = segment(buffer, options.threshold_db, yield_func=yield_func)
    apply_padding(regions, padding_samples)
    new_buffer, used_regions = splice(
        buffer, regions, options.remove_ratio, min_silence_samples,
        progress_func=progress_func, yield_func=yield_func
    )

    result = ProcessResult(new_buffer, used_regions, original_frame_count=buffer.frame_count)
    log(f"   ✓ พบช่วงเงียบ {len(result.silent_regions)} ช่วง, ตัดออก {result.removed_seconds:.2f} วินาที")
    return result
