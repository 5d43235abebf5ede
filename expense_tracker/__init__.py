"""
Expense Tracker - Source Package

A personal expense tracker driven from a chat bot and a small web form.
Expenses live in one human-editable CSV file; the daily "saldo" shows how
spending compares with an evenly spread monthly budget.

DESIGN PRINCIPLES:
1. The CSV file is the single source of truth
2. Strict when writing, tolerant when reading old rows
3. Fail early at startup on a malformed file
4. Every change is auditable
5. Budget maths is pure and lives in one place
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
