"""
Strategy interface and implementations for order-intent generation.

Defines the strategy protocol and concrete variants that propose at most one
order intent per bar.
"""
