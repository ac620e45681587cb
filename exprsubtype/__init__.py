"""Gene-expression subtype discovery: probe selection, clustering and survival."""

from .config import PipelineSettings, build_pipeline_settings, load_config
from .pipeline import PipelineResult, run_pipeline

__version__ = "1.0.0"

__all__ = [
    'PipelineSettings',
    'build_pipeline_settings',
    'load_config',
    'PipelineResult',
    'run_pipeline',
]
