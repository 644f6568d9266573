from __future__ import annotations

import argparse
import contextlib
import logging
import time
from typing import List, Optional

from ..angles import AngleType
from ..config import DashboardConfig, load_config
from ..hardware import device_motion_service, headphone_motion_service
from ..motion_service import MainQueue
from ..readout import build_sections, render_text
from ..sources import DeviceMotionSource, HeadphoneMotionSource, MotionSource
from ..utils.logger import close_logging, setup_logging

logger = logging.getLogger(__name__)


def build_sources(cfg: DashboardConfig, main_queue: MainQueue) -> List[MotionSource]:
    """One source per tab, in tab order."""
    return [
        DeviceMotionSource(device_motion_service(cfg, main_queue)),
        HeadphoneMotionSource(headphone_motion_service(cfg, main_queue)),
    ]


def run_console(sources: List[MotionSource], main_queue: MainQueue, duration: float,
                print_every_s: float = 1.0, angle_type: AngleType = AngleType.DEGREES) -> None:
    t0 = time.monotonic()
    next_print = t0
    while duration <= 0.0 or (time.monotonic() - t0) < duration:
        main_queue.drain()
        now = time.monotonic()
        if now >= next_print:
            next_print = now + print_every_s
            for s in sources:
                if s.is_started or s.motion is not None:
                    print(render_text(s.title, s.is_started, build_sections(s.motion, angle_type)))
            if not any(s.is_started for s in sources):
                logger.info("no source is running, leaving")
                break
        time.sleep(0.01)


def run_gui(cfg: DashboardConfig, sources: List[MotionSource], main_queue: MainQueue, duration: float) -> None:
    # lazy import: --no-gui works without a display
    from .visualize_pygame import DashboardViewer

    viewer = DashboardViewer(width=cfg.screen.width, height=cfg.screen.height, fps=cfg.screen.fps)
    try:
        t0 = time.monotonic()
        while viewer.is_running:
            if duration > 0.0 and (time.monotonic() - t0) > duration:
                break
            main_queue.drain()
            viewer.draw(sources)
    finally:
        viewer.close()


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Live device / headphone motion readout")
    ap.add_argument("--config", type=str, default="config/config.yaml")
    ap.add_argument("--duration", type=float, default=0.0, help="0=run forever")
    ap.add_argument("--no-gui", action="store_true", help="print readings to the console instead")
    ap.add_argument("--autostart", action="store_true", help="start every source at launch")
    ap.add_argument("--log-level", type=str, default=None, help="overrides logging.level from the config")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    setup_logging(level=args.log_level or cfg.logging.level, log_dir=cfg.logging.log_dir)

    main_queue = MainQueue()
    try:
        with contextlib.ExitStack() as stack:
            sources = [stack.enter_context(s) for s in build_sources(cfg, main_queue)]
            if args.autostart or args.no_gui:
                for s in sources:
                    s.start()

            if args.no_gui:
                run_console(sources, main_queue, args.duration)
            else:
                run_gui(cfg, sources, main_queue, args.duration)
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        close_logging()


if __name__ == "__main__":
    main()
