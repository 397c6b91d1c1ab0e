import unittest

import numpy as np

from splitter.models import Signal
from splitter.waveform import bucket_count_for_width, layout_bars, waveform_peaks


class BucketCountTests(unittest.TestCase):
    def test_three_pixels_per_bar(self):
        self.assertEqual(bucket_count_for_width(800), 267)
        self.assertEqual(bucket_count_for_width(2), 1)
        self.assertEqual(bucket_count_for_width(1), 0)


class WaveformPeaksTests(unittest.TestCase):
    def test_bucket_count_is_clamped_to_samples(self):
        track = Signal(8000, np.full(100, 0.5))
        peaks = waveform_peaks(track, 800)
        # 267 bars wanted, clamped to 100 -> width 1, indices 1..99
        self.assertEqual(len(peaks), 99)
        self.assertTrue(all(p == 0.5 for p in peaks))

    def test_too_narrow_for_a_bar(self):
        self.assertEqual(waveform_peaks(Signal(8000, np.ones(50)), 1), [])

    def test_wider_display_never_has_fewer_bars(self):
        track = Signal(8000, np.random.default_rng(3).uniform(-1, 1, 8000))
        counts = [len(waveform_peaks(track, w)) for w in range(2, 3000, 37)]
        self.assertEqual(counts, sorted(counts))


class LayoutBarsTests(unittest.TestCase):
    def test_bars_are_centred_with_minimum_height(self):
        bars = layout_bars([0.5, 0.0], width=10, height=20, pixel_ratio=2)
        self.assertEqual(len(bars), 2)
        self.assertEqual((bars[0].x, bars[0].y, bars[0].width, bars[0].height), (0, 10, 4, 20))
        self.assertEqual((bars[1].x, bars[1].y, bars[1].width, bars[1].height), (6, 19, 4, 2))

    def test_bars_past_the_edge_are_dropped(self):
        bars = layout_bars([0.1] * 5, width=6, height=10)
        self.assertEqual([b.x for b in bars], [0, 3])


if __name__ == "__main__":
    unittest.main()
