"""
Order models, the order ledger, and capital accounting.

Implements the order lifecycle (open, canceled, filled) and the settlement
rules that move reserved capital back into holdings.
"""
