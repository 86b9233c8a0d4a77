"""Locate the container that ran an automation job and explain OOM kills."""

__version__ = "0.1.0"
