from .capture_source import CaptureSource, CaptureState

__all__ = ['CaptureSource', 'CaptureState']
