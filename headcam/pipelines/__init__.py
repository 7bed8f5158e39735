from .detection_sampler import DetectionSampler
from .render_loop import RenderLoop
from .viewer_pipeline import ViewerPipeline

__all__ = ['DetectionSampler', 'RenderLoop', 'ViewerPipeline']
