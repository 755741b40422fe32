"""
Versioned persistence of portfolio results in a key/value store.
"""
