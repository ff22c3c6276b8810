"""Service layer for the table-session and order lifecycle.

Each command opens its own transaction on the passed ``AsyncSession`` and
publishes domain events only after the transaction commits.
"""
