"""Reimbursement workflow: lifecycle states and field-level write control."""

__version__ = "1.0.0"
