"""Container image build and registry push for the scanner."""

from .builder import ImageBuilder, detect_engine

__all__ = ["ImageBuilder", "detect_engine"]
