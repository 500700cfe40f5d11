"""
Lending Book

A personal lending book: clients, fixed-installment loans, daily delinquency
accrual and portfolio statistics, with Decimal money math throughout.
"""

__version__ = "1.0.0"
