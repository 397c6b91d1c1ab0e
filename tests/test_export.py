import os
import tempfile
import unittest

import numpy as np
import soundfile as sf

from splitter.analyzer import analyze_signal
from splitter.export import download_filename, export_tracks, track_name
from splitter.models import Signal


class TrackNameTests(unittest.TestCase):
    def test_names(self):
        self.assertEqual(track_name(0), "Mono mix")
        self.assertEqual(track_name(3), "Channel 3")
        self.assertEqual(download_filename("take1.flac", 0), "take1.flac - Mono mix.wav")
        self.assertEqual(download_filename("take1.flac", 2), "take1.flac - Channel 2.wav")


class ExportTracksTests(unittest.TestCase):
    def test_writes_one_mono_wav_per_track(self):
        rng = np.random.default_rng(5)
        sig = Signal(16000, rng.uniform(-0.5, 0.5, (2, 1600)))
        result = analyze_signal(sig)

        with tempfile.TemporaryDirectory() as td:
            paths = export_tracks(result, td)
            self.assertEqual(sorted(paths), [0, 1, 2])
            for index, path in paths.items():
                self.assertTrue(os.path.isfile(path))
                audio, sr = sf.read(path, dtype="float32", always_2d=True)
                self.assertEqual(sr, 16000)
                self.assertEqual(audio.shape, (1600, 1))
                np.testing.assert_array_equal(audio[:, 0], result.tracks[index].channels[0])


if __name__ == "__main__":
    unittest.main()
