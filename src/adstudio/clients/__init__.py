"""Clients for the external specification model."""

from adstudio.clients.specification import (
    GeminiSpecificationClient,
    SpecificationClient,
    TemplateSpecificationClient,
    build_specification_client,
)

__all__ = [
    "GeminiSpecificationClient",
    "SpecificationClient",
    "TemplateSpecificationClient",
    "build_specification_client",
]
