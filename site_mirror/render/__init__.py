"""Headless-browser sessions and the session pool."""
