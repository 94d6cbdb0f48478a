import unittest
from unittest import mock

import numpy as np

from config import Config, ConfigurationError, NoteRef
from frame_driver import sine_wave
from stability_filter import TunerState
from tuner_engine import AudioFrame, DetectionEvent, TunerEngine

SR = 44100
N = 2048


def tone(freq, amplitude=0.5, n=N, sample_rate=SR):
    return sine_wave(freq, sample_rate, n, amplitude=amplitude)


SILENCE = np.zeros(N)


class TestTunerEngine(unittest.TestCase):
    def test_single_note_table_locks_on_third_frame(self):
        cfg = Config()
        cfg.notes = [NoteRef("A", 110.0)]
        engine = TunerEngine(cfg)
        frame = AudioFrame(tone(110.0), SR)

        self.assertIsNone(engine.process_frame(frame))
        self.assertIsNone(engine.process_frame(frame))
        event = engine.process_frame(frame)

        self.assertIsInstance(event, DetectionEvent)
        self.assertEqual(event.matched_note, NoteRef("A", 110.0))
        self.assertEqual(event.note_name, "A")
        self.assertAlmostEqual(event.frequency, 110.0, delta=1.1)
        self.assertLess(abs(event.cents_deviation), 5.0)
        self.assertEqual(engine.tuner_state, TunerState.LOCKED)

    def test_two_frames_never_lock(self):
        engine = TunerEngine()
        self.assertIsNone(engine.process_frame(tone(196.0), SR))
        self.assertIsNone(engine.process_frame(tone(196.0), SR))
        self.assertEqual(engine.tuner_state, TunerState.TRACKING)

    def test_locked_engine_reports_every_frame_with_latest_reading(self):
        engine = TunerEngine()
        for _ in range(3):
            engine.process_frame(tone(196.0), SR)
        first = engine.process_frame(tone(196.0), SR)
        second = engine.process_frame(tone(197.0), SR)

        self.assertIsNotNone(first)
        self.assertIsNotNone(second)
        self.assertEqual(first.note_name, "G")
        self.assertEqual(second.note_name, "G")
        self.assertNotEqual(second.frequency, first.frequency)
        self.assertEqual(second.frequency, engine.state.last_frequency)

    def test_plain_sequence_uses_configured_sample_rate(self):
        engine = TunerEngine()
        frame = list(tone(329.63))
        for _ in range(2):
            self.assertIsNone(engine.process_frame(frame))
        event = engine.process_frame(frame)
        self.assertIsNotNone(event)
        self.assertEqual(event.note_name, "E")
        self.assertEqual(event.matched_note.frequency, 329.63)

    def test_outlier_frame_resets_and_needs_fresh_run(self):
        engine = TunerEngine()
        for _ in range(3):
            engine.process_frame(tone(196.0), SR)
        self.assertEqual(engine.tuner_state, TunerState.LOCKED)

        self.assertIsNone(engine.process_frame(tone(246.94), SR))
        self.assertEqual(engine.state.stability_count, 0)
        self.assertIsNone(engine.process_frame(tone(246.94), SR))
        self.assertIsNone(engine.process_frame(tone(246.94), SR))
        event = engine.process_frame(tone(246.94), SR)
        self.assertIsNotNone(event)
        self.assertEqual(event.note_name, "B")

    def test_silence_decays_one_step_per_frame(self):
        engine = TunerEngine()
        for _ in range(5):
            engine.process_frame(tone(196.0), SR)
        self.assertEqual(engine.state.stability_count, 5)
        last = engine.state.last_frequency

        for expected in (4, 3, 2, 1, 0, 0):
            self.assertIsNone(engine.process_frame(SILENCE, SR))
            self.assertEqual(engine.state.stability_count, expected)
        self.assertEqual(engine.state.last_frequency, last)
        self.assertEqual(engine.tuner_state, TunerState.IDLE)

    def test_silence_between_good_frames_only_decays(self):
        engine = TunerEngine()
        engine.process_frame(tone(196.0), SR)
        engine.process_frame(tone(196.0), SR)
        self.assertIsNone(engine.process_frame(SILENCE, SR))
        self.assertEqual(engine.state.stability_count, 1)
        self.assertIsNone(engine.process_frame(tone(196.0), SR))
        self.assertEqual(engine.state.stability_count, 2)

    def test_silence_gap_on_fresh_engine_locks_on_fifth_frame(self):
        # First frame seeds the reference and counts: 1, 2, 1 (silence), 2, 3
        engine = TunerEngine()
        frames = [tone(196.0), tone(196.0), SILENCE, tone(196.0), tone(196.0)]
        locked = [engine.process_frame(frame, SR) is not None for frame in frames]
        self.assertEqual(locked, [False, False, False, False, True])
        self.assertEqual(engine.state.stability_count, 3)

    def test_quiet_signal_is_gated(self):
        engine = TunerEngine()
        for _ in range(5):
            self.assertIsNone(engine.process_frame(tone(196.0, amplitude=0.005), SR))
        self.assertEqual(engine.state.stability_count, 0)
        self.assertEqual(engine.state.last_frequency, 0.0)

    def test_out_of_range_estimate_changes_nothing(self):
        engine = TunerEngine()
        engine.process_frame(tone(196.0), SR)
        engine.process_frame(tone(196.0), SR)
        before = (engine.state.last_frequency, engine.state.stability_count)

        self.assertIsNone(engine.process_frame(tone(800.0), SR))
        self.assertEqual((engine.state.last_frequency, engine.state.stability_count), before)
        self.assertEqual(engine.session_summary()["out_of_range"], 1)

    def test_accepted_range_is_configurable(self):
        cfg = Config()
        cfg.estimator.freq_max = 1000.0
        cfg.notes = [NoteRef("G5", 783.99)]
        engine = TunerEngine(cfg)
        events = [engine.process_frame(tone(800.0), SR) for _ in range(3)]
        self.assertIsNone(events[0])
        self.assertIsNotNone(events[-1])
        self.assertEqual(events[-1].note_name, "G5")
        self.assertLessEqual(abs(events[-1].cents_deviation), 50.0)

    def test_invalid_frames_raise_configuration_error(self):
        engine = TunerEngine()
        with self.assertRaises(ConfigurationError):
            engine.process_frame([0.1, 0.2], SR)
        with self.assertRaises(ConfigurationError):
            engine.process_frame(tone(110.0), 0)
        with self.assertRaises(ConfigurationError):
            engine.process_frame(AudioFrame(tone(110.0), -1))

    def test_invalid_config_rejected_at_construction(self):
        cfg = Config()
        cfg.notes = []
        with self.assertRaises(ConfigurationError):
            TunerEngine(cfg)

    def test_reset_returns_to_idle(self):
        engine = TunerEngine()
        for _ in range(3):
            engine.process_frame(tone(110.0), SR)
        engine.reset()
        self.assertEqual(engine.tuner_state, TunerState.IDLE)
        self.assertEqual(engine.state.last_frequency, 0.0)
        self.assertEqual(engine.session_summary()["frames"], 0)

    def test_detection_event_display_hints(self):
        note = NoteRef("A", 110.0)
        self.assertTrue(DetectionEvent(110.2, note, 3.1).in_tune)
        self.assertFalse(DetectionEvent(111.0, note, 15.7).in_tune)
        self.assertEqual(DetectionEvent(108.0, note, -31.8).needle_position, 50.0 - 31.8)

    def test_lock_is_logged_once(self):
        engine = TunerEngine()
        with mock.patch("tuner_engine.log_event") as log_event_mock:
            for _ in range(5):
                engine.process_frame(tone(196.0), SR)
        messages = [call.args[2] for call in log_event_mock.call_args_list]
        self.assertEqual(messages.count("Signal locked"), 1)

    def test_session_summary_counts_and_logs(self):
        engine = TunerEngine()
        for _ in range(3):
            engine.process_frame(tone(196.0), SR)
        engine.process_frame(SILENCE, SR)

        summary = engine.session_summary()
        self.assertEqual(summary["frames"], 4)
        self.assertEqual(summary["gated_frames"], 3)
        self.assertEqual(summary["estimates"], 3)
        self.assertEqual(summary["locked_frames"], 1)
        self.assertEqual(summary["locks"], 1)
        self.assertEqual(summary["rms_min"], 0.0)
        self.assertGreater(summary["rms_max"], 0.3)

        with mock.patch("tuner_engine.log_event") as log_event_mock:
            engine.log_session_summary()
        _, kwargs = log_event_mock.call_args
        self.assertEqual(kwargs["frames"], 4)
        self.assertEqual(kwargs["locks"], 1)
        self.assertEqual(kwargs["rms_min"], "0.000000")

    def test_session_summary_without_frames_does_not_log(self):
        engine = TunerEngine()
        with mock.patch("tuner_engine.log_event") as log_event_mock:
            engine.log_session_summary()
        log_event_mock.assert_not_called()


if __name__ == "__main__":
    unittest.main()
