from .workflow import APPROVALS_TOOL, ApprovalWorkflow

__all__ = ["APPROVALS_TOOL", "ApprovalWorkflow"]
