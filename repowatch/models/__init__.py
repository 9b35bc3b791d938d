"""SQLAlchemy ORM models: one file per table."""

from repowatch.models.analysis_session import AnalysisSession, AnalysisSessionPR
from repowatch.models.contributor import Contributor
from repowatch.models.pull_request import PullRequest
from repowatch.models.repo_contributor import RepoContributor
from repowatch.models.repository import Repository

__all__ = [
    "Repository",
    "Contributor",
    "RepoContributor",
    "PullRequest",
    "AnalysisSession",
    "AnalysisSessionPR",
]
