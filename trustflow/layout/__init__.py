"""Spatial layout for the render boundary."""

from trustflow.layout.engine import FrameResult, LayoutConfig, SpatialLayoutEngine, spring_parameters

__all__ = ["FrameResult", "LayoutConfig", "SpatialLayoutEngine", "spring_parameters"]
