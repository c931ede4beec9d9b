"""
Service layer for test plans and test executions.
"""
from .execution_service import ExecutionService
from .plan_service import PlanService

__all__ = ["ExecutionService", "PlanService"]
