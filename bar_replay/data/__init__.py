"""
Price bars, price series, and the CSV price-feed contract.

Handles reading and writing price CSVs with strict header and row validation.
"""
