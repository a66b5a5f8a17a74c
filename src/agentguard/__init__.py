"""agentguard public API."""

from .adapters import AsyncAuditService
from .approvals import ApprovalWorkflow
from .approvals_store import ApprovalStore, SQLiteApprovalStore
from .config import Settings
from .engine import ActionOrchestrator
from .errors import (
    AgentGuardError,
    Conflict,
    Forbidden,
    IntegrityFault,
    InvalidTransition,
    NotFound,
    PolicyError,
    ValidationError,
)
from .executors import ExecutionOutcome, StubExecutor, ToolExecutor
from .ledger import (
    GENESIS_HASH,
    AuditLog,
    ChainVerifier,
    SQLiteAuditLog,
    VerificationReport,
)
from .lifecycle import Lifecycle
from .policies import (
    AllowAllPolicy,
    DenyAllPolicy,
    DomainPolicy,
    Policy,
    PolicyVerdict,
    ToolRoutedPolicy,
    Verdict,
)
from .service import AuditService
from .storage import SQLiteDatabase
from .types import (
    ActionType,
    ActorType,
    Approval,
    ApprovalStatus,
    AuditEvent,
    DecideResult,
    EventCandidate,
    LifecycleState,
    Page,
    SubmitResult,
    Timeline,
)

__all__ = (
    # Facade
    "AuditService",
    "AsyncAuditService",
    "Settings",
    # Lifecycle
    "ActionOrchestrator",
    "ApprovalWorkflow",
    "Lifecycle",
    "ExecutionOutcome",
    "ToolExecutor",
    "StubExecutor",
    # Types
    "ActionType",
    "ActorType",
    "Approval",
    "ApprovalStatus",
    "AuditEvent",
    "DecideResult",
    "EventCandidate",
    "LifecycleState",
    "Page",
    "SubmitResult",
    "Timeline",
    # Policies
    "Policy",
    "PolicyVerdict",
    "Verdict",
    "AllowAllPolicy",
    "DenyAllPolicy",
    "DomainPolicy",
    "ToolRoutedPolicy",
    # Storage and ledger
    "SQLiteDatabase",
    "AuditLog",
    "SQLiteAuditLog",
    "ApprovalStore",
    "SQLiteApprovalStore",
    "ChainVerifier",
    "VerificationReport",
    "GENESIS_HASH",
    # Errors
    "AgentGuardError",
    "ValidationError",
    "NotFound",
    "Conflict",
    "Forbidden",
    "PolicyError",
    "InvalidTransition",
    "IntegrityFault",
)
