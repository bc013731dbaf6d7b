"""
SQLAlchemy Models for the Reimbursement Workflow.

This module exports all database models for the application.
"""

from reimbursement.models.base import Base, TimeStampedModel
from reimbursement.models.request import Expense, Request
from reimbursement.models.reimbursement import Reimbursement, ReimbursementAttachment

__all__ = [
    # Base classes
    "Base",
    "TimeStampedModel",
    # Request models
    "Request",
    "Expense",
    # Reimbursement models
    "Reimbursement",
    "ReimbursementAttachment",
]
