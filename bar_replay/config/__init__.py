"""
Configuration loading and validation for settings.

Provides strongly typed settings objects for the market-data API, the result
store, the query server and logging, with upfront validation.
"""
