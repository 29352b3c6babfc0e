"""
Silence Cutter - Core Audio Processor
=====================================
Core engine สำหรับตัดช่วงเงียบ + Voice Enhancer แยกออกจาก UI

Workflow:
1. Silence Removal (ถ้าเปิด)  -> ProcessResult (buffer + regions)
2. Voice Enhancer (ถ้าเปิด)   -> buffer ใหม่ ความยาวเท่าเดิม
3. Export                     -> WAV / MP3 bytes
"""

import os
import traceback
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
import soundfile as sf

from audio_types import (
    AudioProcessingError, EncodedAudio, ProcessResult, SampleBuffer,
    UnsupportedConfigurationError
)
from constants import DEFAULT_MP3_BITRATE, OUTPUT_FORMATS, ProcessingConfig
from encoders import encode_lossy, encode_pcm
from enhance_chain import enhance
from silence_remover import remove_silence


class AudioProcessor:
    """
    Core Audio Processing Engine
    ============================
    รับ SampleBuffer ที่ decode แล้ว คืน buffer ใหม่ + regions + bytes
    ไม่ยุ่งกับ UI, ไฟล์ หรือ network (ยกเว้น helper ระดับไฟล์ด้านล่าง)
    """

    def _run_stage(self, stage: str, func: Callable, *args, **kwargs):
        """เรียก stage แล้วแปลง error ที่ไม่คาดคิดให้บอกชื่อ stage"""
        try:
            return func(*args, **kwargs)
        except AudioProcessingError as e:
            if e.stage is None:
                e.stage = stage
            raise
        except Exception as e:
            raise AudioProcessingError(f"{type(e).__name__}: {e}", stage=stage) from e

    def process(
        self,
        buffer: SampleBuffer,
        config: ProcessingConfig,
        log_func: Optional[Callable[[str], None]] = None,
        progress_func: Optional[Callable[[float], None]] = None,
        yield_func: Optional[Callable[[], None]] = None
    ) -> ProcessResult:
        """
        ประมวลผล buffer หนึ่งตัว

        Args:
            buffer: audio ที่ decode แล้ว (ไม่ถูกแก้ไข)
            config: การตั้งค่าการประมวลผล
            log_func: function สำหรับ log ข้อความ
            progress_func: function สำหรับอัพเดท progress (0.0-1.0)
            yield_func: เรียกระหว่าง chunk เพื่อให้ host ยังตอบสนองได้

        Returns:
            ProcessResult (regions ว่างถ้าไม่ได้ตัดช่วงเงียบ)

        Raises:
            UnsupportedConfigurationError: ไม่ได้เปิดฟีเจอร์ใดเลย / options ผิด
            AudioProcessingError: stage ใด stage หนึ่งล้มเหลว
        """
        log = log_func or (lambda x: None)
        progress = progress_func or (lambda x: None)

        if not config.silence_enabled and not config.enhance_enabled:
            raise UnsupportedConfigurationError(
                "Please enable at least one feature (silence removal or enhancement)",
                stage="config"
            )
        if config.silence_enabled:
            config.silence.validate()

        log(f"⏳ Input: {buffer.duration:.2f} วินาที, {buffer.channel_count} ch @ {buffer.sample_rate}Hz")
        progress(0.0)

        # Step 1: Silence Removal (0-70% ถ้ามี enhance ต่อ)
        silence_share = 0.7 if config.enhance_enabled else 1.0
        if config.silence_enabled:
            result = self._run_stage(
                "silence", remove_silence, buffer, config.silence,
                progress_func=lambda p: progress(p * silence_share),
                yield_func=yield_func,
                log_func=log
            )
        else:
            result = ProcessResult(buffer, [], original_frame_count=buffer.frame_count)
        progress(silence_share)

        # Step 2: Voice Enhancer
        if config.enhance_enabled:
            log("🎛️ กำลังปรับแต่งเสียง...")
            enhanced = self._run_stage(
                "enhance", enhance, result.buffer, config.enhance,
                log_func=log, yield_func=yield_func
            )
            result = ProcessResult(enhanced, result.regions, original_frame_count=buffer.frame_count)
            progress(1.0)

        log(f"   ✓ {result.original_duration:.2f}s → {result.new_duration:.2f}s (-{result.reduction_percent:.0f}%)")
        return result

    def export(
        self,
        buffer: SampleBuffer,
        format: str = 'wav',
        bitrate: int = DEFAULT_MP3_BITRATE,
        yield_func: Optional[Callable[[], None]] = None,
        encoder_factory: Optional[Callable] = None
    ) -> EncodedAudio:
        """Encode buffer เป็น bytes ตาม format ('wav' หรือ 'mp3')"""
        if format not in OUTPUT_FORMATS:
            raise UnsupportedConfigurationError(f"Unsupported export format: {format}", stage="encode")
        if format == 'mp3':
            return self._run_stage(
                "encode", encode_lossy, buffer, bitrate,
                encoder_factory=encoder_factory, yield_func=yield_func
            )
        return self._run_stage("encode", encode_pcm, buffer, yield_func=yield_func)

    # ==================== File helpers ====================

    def read_audio(self, path: str) -> SampleBuffer:
        """อ่านไฟล์เสียง (decode อยู่นอก core, ใช้ soundfile)"""
        data, sr = sf.read(path, dtype='float32', always_2d=True)
        return SampleBuffer.from_interleaved(data, sr)

    def process_file(
        self,
        input_path: str,
        output_path: str,
        config: ProcessingConfig,
        log_func: Optional[Callable[[str], None]] = None,
        progress_func: Optional[Callable[[float], None]] = None
    ) -> Tuple[bool, str]:
        """
        ประมวลผลไฟล์เสียงหนึ่งไฟล์

        Returns:
            Tuple[bool, str]: (success, message)
        """
        log = log_func or (lambda x: None)
        progress = progress_func or (lambda x: None)

        try:
            # Step 1: Read file (10%)
            log(f"⏳ กำลังอ่าน: {os.path.basename(input_path)}...")
            buffer = self.read_audio(input_path)
            progress(0.1)

            # Step 2: Process (10-80%)
            result = self.process(
                buffer, config, log_func=log,
                progress_func=lambda p: progress(0.1 + p * 0.7)
            )
            progress(0.8)

            # Step 3: Encode (90%)
            fmt = config.output.format
            log(f"💾 กำลัง encode ({fmt.upper()})...")
            encoded = self.export(result.buffer, fmt, config.output.mp3_bitrate)
            progress(0.9)

            # Step 4: Save (100%)
            with open(output_path, 'wb') as f:
                f.write(encoded.data)
            progress(1.0)

            return True, (
                f"สำเร็จ: {result.original_duration:.1f}s → {result.new_duration:.1f}s "
                f"(-{result.reduction_percent:.0f}%)"
            )

        except Exception as e:
            traceback.print_exc()
            return False, str(e)

    def get_audio_info(self, path: str) -> Dict[str, Any]:
        """ดึงข้อมูลไฟล์เสียง"""
        try:
            info = sf.info(path)
        except RuntimeError:
            return {}
        return {
            'sample_rate': info.samplerate,
            'channels': info.channels,
            'frames': info.frames,
            'duration': info.duration,
            'format': info.format,
            'subtype': info.subtype,
        }


def summarize(result: ProcessResult) -> Dict[str, Any]:
    """สรุปผลแบบเดียวกับตาราง history (ใช้ใน CLI)"""
    return {
        'original_duration': result.original_duration,
        'new_duration': result.new_duration,
        'removed_seconds': result.removed_seconds,
        'reduction_percent': result.reduction_percent,
        'silent_regions': len(result.silent_regions),
        'peak': float(np.max(np.abs(result.buffer.channels))) if result.buffer.frame_count else 0.0,
    }
