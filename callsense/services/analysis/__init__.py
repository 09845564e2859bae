"""Call analysis services."""

from .client import AnalysisClient, parse_analysis

__all__ = ["AnalysisClient", "parse_analysis"]
