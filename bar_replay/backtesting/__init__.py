"""
Replay engine.

Drives a strategy bar by bar, resolving pending orders before opening new ones.
"""
