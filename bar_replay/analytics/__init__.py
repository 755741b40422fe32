"""
Portfolio summary metrics (profit, margin, CAGR) and the serialisable result record.
"""
