"""Analysis engine: downstream workflow fired when a repository's open-PR set changes."""

from repowatch.engines.analysis.runner import AnalysisRunner, PullRequestAnalyzer
from repowatch.engines.analysis.trigger import AnalysisTrigger

__all__ = [
    "AnalysisRunner",
    "AnalysisTrigger",
    "PullRequestAnalyzer",
]
