"""External label provider client and override service."""

from trustflow.labeling.provider import (
    HttpLabelProvider,
    LabelOverrideService,
    LabelProvider,
    LabelRequest,
    LabelResponse,
    build_prompt,
)

__all__ = [
    "HttpLabelProvider",
    "LabelOverrideService",
    "LabelProvider",
    "LabelRequest",
    "LabelResponse",
    "build_prompt",
]
