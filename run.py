#!/usr/bin/env python3
"""
Skin and Bones - audio-reactive four-act performance

Runs the performance either in the stage window (default) or headless, where
a plain sleep loop stands in for the frame callback.
"""

import argparse
import copy
import cProfile
import sys
import time

from config_persistence import load_config
from logging_utils import get_log_level, log_event, set_log_level


def build_app(args):
    from performance_app import PerformanceApp

    saved = load_config()
    # CLI flags and demo timing only apply to this run
    config = copy.deepcopy(saved)
    if args.device is not None:
        config.audio.device_index = args.device
    if args.loop:
        config.host.loop_acts = True
    if args.no_mic:
        config.host.auto_request_microphone = False
    set_log_level(args.log_level or config.log_level)
    log_event("INFO", "Run", "Starting", log_level=get_log_level(), device=config.audio.device_index)

    app = PerformanceApp(config, saved_config=saved)
    app.init()
    if args.quick_demo:
        app.start_quick_demo()
    elif args.demo:
        app.enable_demo_mode(True)
        app.play()
    elif args.play:
        app.play()
    return app


def run_headless(app, seconds: float | None = None, report_every_s: float = 1.0) -> int:
    """Drive ticks from a sleep loop until interrupted or ``seconds`` elapse."""
    started = time.monotonic()
    last_report = started
    try:
        while seconds is None or time.monotonic() - started < seconds:
            app.tick()
            now = time.monotonic()
            if now - last_report >= report_every_s:
                last_report = now
                audio = app.audio
                log_event(
                    "INFO",
                    "Levels",
                    f"Act {app.get_current_act_number()}",
                    vol=f"{audio.get_volume():.2f}",
                    low=f"{audio.get_low_freq():.2f}",
                    mid=f"{audio.get_mid_freq():.2f}",
                    high=f"{audio.get_high_freq():.2f}",
                    beat=audio.get_beat(),
                    gain=f"{audio.get_gain():.2f}",
                    transition=f"{app.get_transition_progress():.2f}" if app.is_in_transition() else "-",
                )
            time.sleep(app.frame_interval / 2000.0)
    except KeyboardInterrupt:
        log_event("INFO", "Run", "Interrupted")
    finally:
        app.dispose()
    return 0


def run_window(app, app_argv: list[str]) -> int:
    # Qt is only needed for the stage window
    from PyQt6.QtWidgets import QApplication

    qt_app = QApplication(app_argv)
    qt_app.setStyle("Fusion")

    from stage_window import StageWindow

    window = StageWindow(app)
    window.show()
    return qt_app.exec()


def list_devices() -> int:
    from audio_capture import list_input_devices

    devices = list_input_devices()
    if not devices:
        print("No input devices found")
        return 1
    for d in devices:
        print(f"  [{d['index']}] {d['name']} ({d['channels']} ch, {d['sample_rate']:.0f} Hz)")
    return 0


def run(args, app_argv: list[str]) -> int:
    if args.list_devices:
        return list_devices()
    app = build_app(args)
    if args.headless:
        return run_headless(app, args.seconds)
    return run_window(app, app_argv)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run Skin and Bones")
    parser.add_argument("--headless", action="store_true", help="Run without the stage window")
    parser.add_argument("--seconds", type=float, default=None, help="Stop a headless run after N seconds")
    parser.add_argument("--play", action="store_true", help="Start auto-progression immediately")
    parser.add_argument("--demo", action="store_true", help="Use demo timing and start playing")
    parser.add_argument("--quick-demo", action="store_true", help="3 s acts, 0.3 s transitions")
    parser.add_argument("--loop", action="store_true", help="Wrap from act 4 back to act 1")
    parser.add_argument("--device", type=int, default=None, help="Input device index (see --list-devices)")
    parser.add_argument("--no-mic", action="store_true", help="Do not request the microphone on start")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
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

    # Keep Qt argument list clean
    app_argv = [sys.argv[0]]

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run(args, app_argv)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run(args, app_argv)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
