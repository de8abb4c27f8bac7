"""centerflow: auditable agent workflows for learning-center administration."""

from .agents import Agent, ContentPublishingAgent, EnrollmentManagementAgent
from .config import CenterflowConfig, load_config
from .db import AgentExecution, Database
from .enums import AgentType, ExecutionPolicy, ExecutionStatus
from .persistence import get_database
from .registry import AgentRegistry, build_registry
from .runner import StepCommitPolicy, TransactionalPolicy, WorkflowRunner
from .security import Actor
from .service import ExecutionService

__version__ = "0.1.0"
__all__ = [
    "Actor",
    "Agent",
    "AgentExecution",
    "AgentRegistry",
    "AgentType",
    "CenterflowConfig",
    "ContentPublishingAgent",
    "Database",
    "EnrollmentManagementAgent",
    "ExecutionPolicy",
    "ExecutionService",
    "ExecutionStatus",
    "StepCommitPolicy",
    "TransactionalPolicy",
    "WorkflowRunner",
    "build_registry",
    "get_database",
    "load_config",
]
