"""Generated source artifacts (models, DTOs, services, controllers)."""

from sirhgen.artifacts.generator import ArtifactGenerator, RenderedEntity
from sirhgen.artifacts.writer import ArtifactWriter

__all__ = ["ArtifactGenerator", "ArtifactWriter", "RenderedEntity"]
