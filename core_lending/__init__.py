"""
Core Lending Engine

Loan term calculation, repayment schedule generation, balance recomputation
and risk classification. All financial math uses Decimal.
"""

__version__ = "1.0.0"
