"""repowatch: GitHub pull-request mirror and change-driven analysis."""

__version__ = "0.1.0"
