"""Codez: turns a GitHub webhook event into an AI-driven code change."""

__version__ = "0.1.0"
