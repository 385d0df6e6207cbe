from .capabilities import (
    CapabilityRouter,
    FalCapability,
    GeminiImageCapability,
    GenerationCapability,
    GenerationOutcome,
    Simulated3DCapability,
    default_capabilities,
    extract_primary_url,
)

__all__ = [
    "CapabilityRouter",
    "FalCapability",
    "GeminiImageCapability",
    "GenerationCapability",
    "GenerationOutcome",
    "Simulated3DCapability",
    "default_capabilities",
    "extract_primary_url",
]
