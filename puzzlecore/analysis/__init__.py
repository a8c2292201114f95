"""Statistical analysis of completed attempts."""

from .service import StatisticalAnalysisService

__all__ = ["StatisticalAnalysisService"]
