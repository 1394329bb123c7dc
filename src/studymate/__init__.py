"""StudyMate — resilient AI client layer for the study assistant app."""

__version__ = "1.0.0"
