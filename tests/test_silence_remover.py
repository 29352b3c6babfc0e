"""silence_remover unit tests"""
import math

import numpy as np
import pytest

from audio_types import Region, SampleBuffer, UnsupportedConfigurationError
from constants import NOISE_FLOOR_FALLBACK_DB, SEGMENT_BLOCK_SIZE, SilenceOptions
from silence_remover import (
    apply_padding, classify_blocks, estimate_noise_floor, keep_ratio_for,
    remove_silence, segment, splice
)

from conftest import SR, speech_with_gap, tone


def assert_covers(regions, frame_count):
    assert regions[0].start == 0
    assert regions[-1].end == frame_count
    for prev, nxt in zip(regions, regions[1:]):
        assert prev.end == nxt.start
        assert prev.is_silence != nxt.is_silence
    assert all(r.length > 0 for r in regions)


class TestNoiseFloor:

    def test_digital_silence_returns_fallback(self):
        buffer = SampleBuffer.silence(SR * 5, SR)
        assert estimate_noise_floor(buffer) == NOISE_FLOOR_FALLBACK_DB

    def test_empty_buffer_returns_fallback(self):
        assert estimate_noise_floor(SampleBuffer.silence(0, SR)) == NOISE_FLOOR_FALLBACK_DB

    def test_steady_tone_matches_rms(self):
        buffer = SampleBuffer.from_channels([tone(3.0, amp=0.5)], SR)
        expected = 20 * math.log10(0.5 / math.sqrt(2))
        assert estimate_noise_floor(buffer) == pytest.approx(expected, abs=0.1)

    def test_uses_tenth_percentile_and_skips_digital_silence(self):
        # 5 วินาทีแรกเป็นศูนย์ (ถูกข้าม), ตามด้วย 20 วินาทีที่ระดับต่างกันทีละวินาที
        seconds = [np.zeros(SR, dtype=np.float32)] * 5
        seconds += [np.full(SR, 0.001 * (k + 1), dtype=np.float32) for k in range(20)]
        buffer = SampleBuffer.from_channels([np.concatenate(seconds)], SR)
        # floor(0.1 * 20) = 2 -> ระดับที่สามจากต่ำสุด
        assert estimate_noise_floor(buffer) == pytest.approx(20 * math.log10(0.003), abs=1e-3)

    def test_only_channel_zero_is_inspected(self):
        quiet = np.full(SR * 2, 0.01, dtype=np.float32)
        loud = np.full(SR * 2, 0.9, dtype=np.float32)
        buffer = SampleBuffer.from_channels([quiet, loud], SR)
        assert estimate_noise_floor(buffer) == pytest.approx(-40.0, abs=1e-3)


class TestSegment:

    def test_regions_cover_whole_buffer(self, rng):
        data = np.zeros(SR * 3, dtype=np.float32)
        for start in (1000, 30000, 70000, 120000):
            data[start:start + 5000] = rng.uniform(-0.5, 0.5, 5000)
        buffer = SampleBuffer.from_channels([data], SR)
        regions = segment(buffer, -35.0)
        assert_covers(regions, buffer.frame_count)
        assert sum(r.length for r in regions) == buffer.frame_count

    def test_partial_last_block_ends_at_frame_count(self):
        buffer = SampleBuffer.from_channels([tone(0.1)[:3000]], SR)
        regions = segment(buffer, -35.0)
        assert regions == [Region(0, 3000, False)]

    def test_empty_buffer_has_no_regions(self):
        assert segment(SampleBuffer.silence(0, SR), -35.0) == []

    def test_block_is_voiced_if_any_channel_is_loud(self):
        left = np.zeros(SEGMENT_BLOCK_SIZE * 4, dtype=np.float32)
        right = left.copy()
        right[SEGMENT_BLOCK_SIZE * 2 + 10] = 0.5
        buffer = SampleBuffer.from_channels([left, right], SR)
        assert classify_blocks(buffer, -35.0).tolist() == [True, True, False, True]

    def test_boundaries_fall_on_block_edges(self, gap_buffer):
        regions = segment(gap_buffer, -35.0)
        assert [r.is_silence for r in regions] == [False, True, False]
        assert regions[1].start == 173 * SEGMENT_BLOCK_SIZE
        assert regions[1].end == 258 * SEGMENT_BLOCK_SIZE

    def test_minus_infinity_threshold_marks_nothing_silent(self):
        buffer = SampleBuffer.silence(SR, SR)
        regions = segment(buffer, float('-inf'))
        assert regions == [Region(0, SR, False)]

    def test_yield_func_is_called(self, gap_buffer):
        calls = []
        segment(gap_buffer, -35.0, yield_func=lambda: calls.append(1))
        assert len(calls) >= 1


class TestPadding:

    def test_voiced_regions_grow_on_both_sides(self):
        regions = [Region(0, 1024, False), Region(1024, 10240, True), Region(10240, 11264, False)]
        apply_padding(regions, 500)
        assert regions == [
            Region(0, 1524, False), Region(1524, 9740, True), Region(9740, 11264, False)
        ]

    def test_shift_is_clamped_to_silent_length(self):
        regions = [Region(0, 1024, False), Region(1024, 1324, True), Region(1324, 2048, False)]
        apply_padding(regions, 500)
        # forward sweep กินช่วงเงียบทั้งหมด, backward sweep ไม่เหลืออะไรให้ย้าย
        assert regions[1].length == 0
        assert all(r.length >= 0 for r in regions)
        assert regions[0].end == 1324
        assert regions[2].start == 1324

    def test_never_crosses_neighbour_original_boundary(self, rng):
        lengths = rng.integers(1, 4000, size=40)
        edges = np.concatenate([[0], np.cumsum(lengths)])
        regions = [Region(int(a), int(b), i % 2 == 1) for i, (a, b) in enumerate(zip(edges, edges[1:]))]
        original = [Region(r.start, r.end, r.is_silence) for r in regions]
        apply_padding(regions, 1500)
        for i, r in enumerate(regions):
            assert r.length >= 0
            if i > 0:
                assert r.start >= original[i - 1].start
            if i < len(regions) - 1:
                assert r.end <= original[i + 1].end
        assert regions[0].start == 0
        assert regions[-1].end == original[-1].end

    def test_zero_padding_is_noop(self):
        regions = [Region(0, 1024, False), Region(1024, 2048, True)]
        apply_padding(regions, 0)
        assert regions == [Region(0, 1024, False), Region(1024, 2048, True)]


class TestSplice:

    def test_zero_ratio_returns_identical_samples(self, stereo_gap_buffer):
        regions = apply_padding(segment(stereo_gap_buffer, -35.0), 2205)
        out, used = splice(stereo_gap_buffer, regions, 0.0, 0)
        np.testing.assert_array_equal(out.channels, stereo_gap_buffer.channels)
        assert out is not stereo_gap_buffer

    def test_full_ratio_removes_all_silent_regions(self, rng):
        data = rng.uniform(-0.5, 0.5, SEGMENT_BLOCK_SIZE * 12).astype(np.float32)
        data[SEGMENT_BLOCK_SIZE * 3:SEGMENT_BLOCK_SIZE * 7] = 0.0
        buffer = SampleBuffer.from_channels([data], SR)
        regions = apply_padding(segment(buffer, -35.0), 100)
        out, used = splice(buffer, regions, 1.0, 0)
        voiced = np.concatenate([data[r.start:r.end] for r in used if not r.is_silence])
        np.testing.assert_array_equal(out.channel(0), voiced)
        assert out.frame_count == sum(r.length for r in used if not r.is_silence)

    def test_keeps_prefix_of_long_silence(self):
        data = np.arange(3000, dtype=np.float32)
        buffer = SampleBuffer.from_channels([data], SR)
        regions = [Region(0, 1000, False), Region(1000, 2000, True), Region(2000, 3000, False)]
        out, _ = splice(buffer, regions, 0.7, 0)
        expected = np.concatenate([data[:1000], data[1000:1000 + 300], data[2000:]])
        np.testing.assert_array_equal(out.channel(0), expected)

    def test_short_silence_is_kept(self):
        data = np.arange(3000, dtype=np.float32)
        buffer = SampleBuffer.from_channels([data], SR)
        regions = [Region(0, 1000, False), Region(1000, 2000, True), Region(2000, 3000, False)]
        out, _ = splice(buffer, regions, 1.0, 1001)
        np.testing.assert_array_equal(out.channel(0), data)

    def test_keep_ratio_threshold_is_inclusive(self):
        region = Region(0, 100, True)
        assert keep_ratio_for(region, 0.7, 100) == pytest.approx(0.3)
        assert keep_ratio_for(region, 0.7, 101) == 1.0
        assert keep_ratio_for(Region(0, 100, False), 0.7, 0) == 1.0

    def test_empty_regions_are_skipped(self):
        buffer = SampleBuffer.from_channels([np.ones(2048, dtype=np.float32)], SR)
        regions = [Region(0, 1024, False), Region(1024, 1024, True), Region(1024, 2048, False)]
        out, used = splice(buffer, regions, 1.0, 0)
        assert out.frame_count == 2048
        assert len(used) == 2

    def test_progress_is_monotonic_and_finishes(self):
        n = 240
        edges = np.arange(0, (n + 1) * 100, 100)
        regions = [Region(int(a), int(b), i % 2 == 1) for i, (a, b) in enumerate(zip(edges, edges[1:]))]
        buffer = SampleBuffer.from_channels([np.ones(edges[-1], dtype=np.float32)] * 2, SR)
        values = []
        yields = []
        splice(buffer, regions, 0.5, 0, progress_func=values.append, yield_func=lambda: yields.append(1))
        assert values == sorted(values)
        assert all(0.0 <= v <= 1.0 for v in values)
        assert values[-1] == 1.0
        # progress ทุก 50 regions (เฉพาะ channel แรก)
        assert len(yields) == math.ceil(n / 50)

    def test_input_is_not_mutated(self, gap_buffer):
        before = gap_buffer.channels.copy()
        regions = apply_padding(segment(gap_buffer, -35.0), 2205)
        splice(gap_buffer, regions, 1.0, 0)
        np.testing.assert_array_equal(gap_buffer.channels, before)


class TestRemoveSilence:

    def test_ten_second_scenario(self, gap_buffer):
        options = SilenceOptions(remove_ratio=0.7, threshold_db=-35.0, min_silence_duration=0.1, padding=0.05)
        result = remove_silence(gap_buffer, options)
        assert 8.6 <= result.new_duration <= 8.75
        assert len(result.silent_regions) == 1
        assert result.original_duration == pytest.approx(10.0)
        assert result.reduction_percent == pytest.approx(100 * (1 - result.new_duration / 10.0))

    def test_regions_refer_to_input_indices(self, gap_buffer):
        result = remove_silence(gap_buffer, SilenceOptions(remove_ratio=1.0, min_silence_duration=0.0))
        silent = result.silent_regions[0]
        padding = int(0.05 * SR)
        assert silent.start == 173 * SEGMENT_BLOCK_SIZE + padding
        assert silent.end == 258 * SEGMENT_BLOCK_SIZE - padding
        assert result.buffer.frame_count == gap_buffer.frame_count - silent.length

    def test_stereo_channels_stay_aligned(self, stereo_gap_buffer):
        result = remove_silence(stereo_gap_buffer, SilenceOptions(remove_ratio=0.8))
        np.testing.assert_array_equal(result.buffer.channel(0), result.buffer.channel(1))

    def test_zero_ratio_is_identity(self):
        buffer = speech_with_gap(total=3.0, gap_start=1.0, gap_end=2.0)
        result = remove_silence(buffer, SilenceOptions(remove_ratio=0.0, threshold_db=-20.0, padding=0.2))
        np.testing.assert_array_equal(result.buffer.channels, buffer.channels)

    def test_invalid_ratio_raises(self, gap_buffer):
        with pytest.raises(UnsupportedConfigurationError):
            remove_silence(gap_buffer, SilenceOptions(remove_ratio=1.5))

    def test_log_func_receives_messages(self, gap_buffer):
        messages = []
        remove_silence(gap_buffer, SilenceOptions(), log_func=messages.append)
        assert any("ตัดออก" in m for m in messages)
