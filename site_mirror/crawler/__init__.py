"""Crawl state, discovery protocol and the BFS orchestrator."""
