#!/usr/bin/env python3
"""
stringtuner - Plucked string tuner

Drives the tuning engine over a synthesized plucked string, one frame at a
time, the way a live audio host would, and prints every locked reading.
"""

import argparse
import cProfile
import sys
from pathlib import Path

from config import ConfigurationError
from config_persistence import load_config
from frame_driver import iter_frames, pluck
from logging_utils import log_event, set_log_level
from tuner_engine import TunerEngine


def run_tuner(args: argparse.Namespace) -> int:
    config = load_config(Path(args.config)) if args.config else load_config()
    if args.sample_rate is not None:
        config.audio.sample_rate = args.sample_rate
    if args.frame_size is not None:
        config.audio.frame_size = args.frame_size
    set_log_level(args.log_level or config.log_level)

    try:
        engine = TunerEngine(config)
    except ConfigurationError as e:
        log_event("ERROR", "Tuner", "Invalid configuration", error=e)
        return 2

    sample_rate = config.audio.sample_rate
    frame_size = config.audio.frame_size
    signal = pluck(args.freq, sample_rate, args.seconds, amplitude=args.amplitude)
    log_event("INFO", "Tuner", "Plucking", freq_hz=f"{args.freq:.2f}", seconds=args.seconds,
              sample_rate=sample_rate, frame_size=frame_size)

    for index, frame in enumerate(iter_frames(signal, frame_size)):
        event = engine.process_frame(frame, sample_rate)
        if event is None:
            continue
        marker = "IN TUNE" if event.in_tune else ("flat" if event.cents_deviation < 0 else "sharp")
        print(
            f"[{index:4d}] {event.note_name:<2} {event.frequency:7.1f} Hz "
            f"{event.cents_deviation:+6.1f} cents  {marker}",
            flush=True,
        )

    engine.log_session_summary()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the string tuner over a synthesized pluck")
    parser.add_argument("--freq", type=float, default=110.0, help="Pluck frequency in Hz (default: 110)")
    parser.add_argument("--seconds", type=float, default=2.0, help="Pluck length in seconds (default: 2)")
    parser.add_argument("--amplitude", type=float, default=0.6, help="Initial pluck amplitude (default: 0.6)")
    parser.add_argument("--sample-rate", type=int, default=None, help="Override configured sample rate")
    parser.add_argument("--frame-size", type=int, default=None, help="Override configured frame size")
    parser.add_argument("--config", default=None, help="Path to a JSON config file")
    parser.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    args = parser.parse_args()

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_tuner(args)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_tuner(args)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
