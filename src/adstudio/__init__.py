"""Ad brief workflow and video generation job orchestration."""

from adstudio.studio import Studio

__all__ = ["Studio"]

__version__ = "0.1.0"
