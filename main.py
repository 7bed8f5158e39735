import argparse
import sys
import logging
import signal
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from headcam import __version__
from headcam.utils import load_config, merge_configs

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = 'configs/viewer_config.yml'


class GracefulKiller:
    kill_now = False

    def __init__(self, on_kill=None):
        self.on_kill = on_kill
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.kill_now = True
        if self.on_kill is not None:
            self.on_kill()


def setup_logging(debug: bool = False, log_file: Optional[str] = 'headcam.log', level: str = 'INFO'):
    log_level = logging.DEBUG if debug else getattr(logging, str(level).upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a'))
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
        force=True
    )
    logger.info("Logging initialized")


def print_system_info():
    logger.info("=" * 60)
    logger.info(f"HEADCAM VIEWER {__version__}")
    logger.info("=" * 60)
    logger.info(f"Python version: {sys.version.split()[0]}")
    logger.info(f"OpenCV version: {cv2.__version__}")
    logger.info(f"NumPy version: {np.__version__}")
    logger.info("=" * 60)


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    def put(section: str, key: str, value):
        overrides.setdefault(section, {})[key] = value

    if getattr(args, 'device', None) is not None:
        put('capture', 'device', args.device)
    if getattr(args, 'interval_ms', None) is not None:
        put('detection', 'interval_ms', args.interval_ms)
    if getattr(args, 'model', None):
        put('detection', 'model_path', args.model)
    if getattr(args, 'refresh_hz', None) is not None:
        put('render', 'refresh_hz', args.refresh_hz)
    if getattr(args, 'scene', None):
        put('render', 'scene', args.scene)
    if getattr(args, 'record', None):
        put('render', 'record_path', args.record)
    if getattr(args, 'no_window', False):
        put('render', 'show_window', False)
    if getattr(args, 'preview', False):
        put('render', 'preview', True)
    if getattr(args, 'no_mirror', False):
        put('signal', 'mirror', False)

    for section, values in overrides.items():
        for key, value in values.items():
            logger.info(f"Override {section}.{key} = {value}")

    return merge_configs(config, overrides)


def run_devices_mode(config: Dict[str, Any]) -> int:
    from headcam.capture import CaptureSource

    capture = CaptureSource(max_probe=config.get('capture', {}).get('max_probe', 5))
    devices = capture.list_devices()
    if not devices:
        print("No capture devices found")
        return 1
    for device in devices:
        print(f"{device.id}\t{device.label}")
    return 0


def run_view_mode(config: Dict[str, Any]) -> int:
    from headcam.pipelines import ViewerPipeline

    logger.info("Starting VIEW mode")
    pipeline = ViewerPipeline(config)
    killer = GracefulKiller(on_kill=pipeline.render_loop.stop)

    pipeline.run()

    if killer.kill_now:
        logger.info("Viewer stopped by signal")
    elif pipeline.render_loop.error is not None:
        logger.error(f"Viewer stopped after a render error: {pipeline.render_loop.error}")
        return 1
    else:
        logger.info("Viewer closed")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Headcam - 3D viewer driven by your face position',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  List cameras:
    python main.py devices

  View the demo scene with the first camera:
    python main.py view

  External camera, own point cloud, detection preview:
    python main.py view --device 1 --scene cloud.npy --preview
        """
    )

    parser.add_argument(
        'mode',
        choices=['view', 'devices'],
        help='Operation mode: view (run the viewer) or devices (list cameras)'
    )
    parser.add_argument('--config', default=DEFAULT_CONFIG,
                        help=f'Path to viewer config file (default: {DEFAULT_CONFIG})')
    parser.add_argument('--device', help='Capture device index, path or URL (overrides config)')
    parser.add_argument('--model', help='YuNet ONNX face model (Haar cascade if omitted)')
    parser.add_argument('--interval-ms', type=int, help='Face detection period in milliseconds')
    parser.add_argument('--refresh-hz', type=float, help='Render loop rate')
    parser.add_argument('--scene', help='Point cloud file (.npy or .xyz)')
    parser.add_argument('--record', help='Write rendered frames to this video file')
    parser.add_argument('--no-window', action='store_true', help='Render headless')
    parser.add_argument('--preview', action='store_true', help='Show the camera feed with detections')
    parser.add_argument('--no-mirror', action='store_true', help='Do not mirror the face offsets')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    parser.add_argument('--no-logging-file', action='store_true', help='Disable logging to file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.config == DEFAULT_CONFIG and not Path(args.config).exists():
            config = {}
        else:
            config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Config error: {e}")
        return 1

    log_cfg = config.get('logging', {}) or {}
    log_file = None if args.no_logging_file else log_cfg.get('file', 'headcam.log')
    setup_logging(args.debug, log_file, log_cfg.get('level', 'INFO'))
    print_system_info()

    try:
        config = apply_overrides(config, args)
        if args.mode == 'devices':
            return run_devices_mode(config)
        return run_view_mode(config)
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
