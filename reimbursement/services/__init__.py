"""
Workflow services.

Modules are imported directly (e.g. reimbursement.services.workflow_service)
so that models can depend on the pure rule modules without import cycles.
"""
