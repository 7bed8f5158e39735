from .video_io import (
    VideoStream,
    VideoWriter,
    DeviceInfo,
    CaptureError,
    DevicePermissionError,
    DeviceUnavailableError,
    probe_devices,
)
from .config_loader import load_config, merge_configs

__all__ = ['VideoStream', 'VideoWriter', 'DeviceInfo', 'CaptureError', 'DevicePermissionError',
           'DeviceUnavailableError', 'probe_devices', 'load_config', 'merge_configs']
