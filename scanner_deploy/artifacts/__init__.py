"""Registry pull credential plumbing for the scanner Job."""

from .channel import ArtifactChannel, ArtifactChannelProvisioner

__all__ = ["ArtifactChannel", "ArtifactChannelProvisioner"]
