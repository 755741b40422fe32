"""
HTTP query surface over stored portfolio results.
"""
