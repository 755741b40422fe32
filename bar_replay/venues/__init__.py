"""
Market-data venue adapters.

HTTP client and paginated downloader for historical candles.
"""
