"""Moments — private microblog assistant."""

__version__ = "0.3.0"
