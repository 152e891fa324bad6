"""
Database ORM Models
SQLAlchemy ORM models for database tables.
"""

from .models import (
    Base,
    DeliveryAgent,
    Supplier,
    Product,
    StockAllocation,
    AuditFlag,
    RoleDeliveryAgent,
    Bin,
    EnforcementAction,
    ComplianceViolation,
    TrainingAssignment,
    AgentActivityLog,
    SystemAlert,
    SystemNotification,
    ZoneNotification,
    ThresholdViolation,
    EscalationRequest,
    SalaryDeduction,
    SyncEventLog,
)

__all__ = [
    "Base",
    "DeliveryAgent",
    "Supplier",
    "Product",
    "StockAllocation",
    "AuditFlag",
    "RoleDeliveryAgent",
    "Bin",
    "EnforcementAction",
    "ComplianceViolation",
    "TrainingAssignment",
    "AgentActivityLog",
    "SystemAlert",
    "SystemNotification",
    "ZoneNotification",
    "ThresholdViolation",
    "EscalationRequest",
    "SalaryDeduction",
    "SyncEventLog",
]
