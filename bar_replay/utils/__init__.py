"""
Generic utility functions shared across modules.

Includes time/clock abstractions, epoch conversion, rolling indicators and
logging setup.
"""
