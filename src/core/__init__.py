"""
Core curve math, domain models, and contracts.

This module contains the foundational building blocks that are independent
of token custody, clocks and pool identifiers.
"""
