from .export import artifact_filename, render_artifact_markdown, render_transcript, slugify
from .gist import GistClient, GistRef, GistSync
from .pipeline import ArtifactPipeline, ArtifactResult

__all__ = [
    "ArtifactPipeline",
    "ArtifactResult",
    "GistClient",
    "GistRef",
    "GistSync",
    "artifact_filename",
    "render_artifact_markdown",
    "render_transcript",
    "slugify",
]
