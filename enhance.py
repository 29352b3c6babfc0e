#!/usr/bin/env python
"""
Silence Cutter CLI
==================
ตัดช่วงเงียบ และ/หรือ ปรับแต่งเสียงพูด จาก command line

Usage:
    python enhance.py <input.wav> [output.wav]
    python enhance.py <input.wav> --mode max            # ตัดช่วงเงียบ 100%
    python enhance.py <input.wav> --enhance             # + Voice Enhancer
    python enhance.py <input.wav> --aggressive --no-silence      # Enhancer (gate แรง) อย่างเดียว
    python enhance.py <input.wav> --format mp3 --bitrate 192

Modes:
    - balanced: ตัดช่วงเงียบออก 70%
    - fast:     ตัดช่วงเงียบออก 80%
    - max:      ตัดช่วงเงียบออกทั้งหมด
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from audio_processor import AudioProcessor, summarize
from audio_types import AudioProcessingError
from config_manager import ConfigManager
from constants import (
    APP_TITLE, OUTPUT_FORMATS, THRESHOLD_MAX_DB, THRESHOLD_MIN_DB,
    EnhanceOptions, ProcessingConfig, SilenceMode
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=APP_TITLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python enhance.py talk.wav                        # Balanced (70%)
    python enhance.py talk.wav --mode fast            # 80%
    python enhance.py talk.wav --threshold -45        # ตัดน้อยลง
    python enhance.py talk.wav --enhance --aggressive # + Gate แรง
    python enhance.py talk.wav --preset podcast
        """
    )
    parser.add_argument('input', help='Input audio file')
    parser.add_argument('output', nargs='?', help='Output audio file')
    parser.add_argument('--preset', help='Load settings from preset id')
    parser.add_argument('--config-dir', help='Directory for settings/presets')
    parser.add_argument('--mode', choices=[m.name.lower() for m in SilenceMode],
                        help='Silence removal amount (balanced=70%%, fast=80%%, max=100%%)')
    parser.add_argument('--ratio', type=float, help='Custom remove ratio 0.0-1.0')
    parser.add_argument('--threshold', type=float,
                        help=f'Silence threshold dB ({THRESHOLD_MIN_DB:.0f} to {THRESHOLD_MAX_DB:.0f})')
    parser.add_argument('--min-silence', type=float, help='Minimum silence duration (seconds)')
    parser.add_argument('--padding', type=float, help='Padding around speech (seconds)')
    parser.add_argument('--no-silence', action='store_true', help='Disable silence removal')
    parser.add_argument('--enhance', action='store_true', help='Enable Voice Enhancer')
    parser.add_argument('--aggressive', action='store_true', help='Aggressive noise gate (implies --enhance)')
    parser.add_argument('--format', choices=OUTPUT_FORMATS, help='Output format')
    parser.add_argument('--bitrate', type=int, help='MP3 bitrate (kbps)')
    return parser


def config_from_args(args: argparse.Namespace) -> ProcessingConfig:
    """รวม preset (ถ้ามี) กับ flag จาก command line"""
    config = ProcessingConfig()
    if args.preset:
        manager = ConfigManager(args.config_dir)
        loaded = manager.load_preset(args.preset)
        if loaded is None:
            raise SystemExit(f"[ERROR] Preset not found: {args.preset}")
        config = loaded

    silence = config.silence
    if args.mode:
        silence = replace(silence, remove_ratio=SilenceMode[args.mode.upper()].value)
    if args.ratio is not None:
        silence = replace(silence, remove_ratio=args.ratio)
    if args.threshold is not None:
        threshold = max(THRESHOLD_MIN_DB, min(THRESHOLD_MAX_DB, args.threshold))
        silence = replace(silence, threshold_db=threshold)
    if args.min_silence is not None:
        silence = replace(silence, min_silence_duration=args.min_silence)
    if args.padding is not None:
        silence = replace(silence, padding=args.padding)
    config.silence = silence

    if args.no_silence:
        config.silence_enabled = False
    if args.enhance:
        config.enhance_enabled = True
    if args.aggressive:
        # --aggressive เปิด Voice Enhancer ให้ด้วย
        config.enhance_enabled = True
        config.enhance = EnhanceOptions(aggressive_gate=True)
    if args.format:
        config.output.format = args.format
    if args.bitrate:
        config.output.mp3_bitrate = args.bitrate
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    input_path = Path(args.input)

    if not input_path.exists():
        print(f"[ERROR] Input file not found: {args.input}")
        return 1

    config = config_from_args(args)
    fmt = config.output.format
    output_path = args.output or str(input_path.with_name(input_path.stem + "_cut." + fmt))

    processor = AudioProcessor()

    print("=" * 60)
    print(f"[Loading] {args.input}")
    buffer = processor.read_audio(str(input_path))
    print(f"  Duration: {buffer.duration:.1f}s, {buffer.channel_count} ch @ {buffer.sample_rate}Hz")

    print("\n" + "=" * 60)
    if config.silence_enabled:
        s = config.silence
        print(f"Silence Removal: remove {s.remove_ratio:.0%}, threshold {s.threshold_db:.0f}dB, "
              f"min {s.min_silence_duration:.2f}s, padding {s.padding:.2f}s")
    if config.enhance_enabled:
        print(f"Voice Enhancer: {config.enhance.mode}")
    print("=" * 60)

    try:
        result = processor.process(buffer, config, log_func=print)
        encoded = processor.export(result.buffer, fmt, config.output.mp3_bitrate)
    except AudioProcessingError as e:
        print(f"[ERROR] {e}")
        return 1

    with open(output_path, 'wb') as f:
        f.write(encoded.data)

    info = summarize(result)
    print("\n" + "=" * 60)
    print("[Complete]")
    print(f"  Output: {output_path} ({encoded.mime_type}, {len(encoded)} bytes)")
    print(f"  Duration: {info['original_duration']:.1f}s -> {info['new_duration']:.1f}s "
          f"(-{info['reduction_percent']:.0f}%)")
    if config.silence_enabled:
        print(f"  Silent regions: {info['silent_regions']}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
