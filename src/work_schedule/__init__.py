"""
Work Schedule and Payroll Tracker

Keeps a staff member's private shift calendar, works out monthly pay
under combination pricing with a month-to-date accrual, and keeps the
calendar in step with the shared roster ledger.
"""

__version__ = "1.0.0"
__author__ = "Work Schedule Team"
