"""Playwright Mirror - mirror one leader browser onto follower browsers."""

__version__ = "0.1.0"
