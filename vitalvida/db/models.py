"""
SQLAlchemy ORM Models
Tables for the VitalVida inventory/agent domain, the Role compliance/bin domain,
finance threshold controls and pipeline bookkeeping.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer,
    Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# VitalVida inventory / agent domain
# ---------------------------------------------------------------------------


class DeliveryAgent(Base):
    """
    VitalVida delivery agent (DA).

    Source of truth for agent profile, rating and operational status.
    """
    __tablename__ = 'vitalvida_delivery_agents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    location = Column(String(255), nullable=True,
                      comment='Free-text location, mapped to a zone on sync')
    rating = Column(Float, nullable=False, default=0.0)
    status = Column(String(32), nullable=False, default='Active',
                    comment='Active, Inactive, On Delivery, Break, Suspended, Training Required')
    compliance_score = Column(Integer, nullable=True, default=100)
    violation_count = Column(Integer, nullable=False, default=0)
    suspension_reason = Column(String(255), nullable=True)
    last_compliance_action = Column(String(64), nullable=True)
    last_compliance_check = Column(DateTime, nullable=True)
    compliance_updated_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    allocations = relationship("StockAllocation", back_populates="agent")
    audit_flags = relationship("AuditFlag", back_populates="agent", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<DeliveryAgent(id={self.id}, name={self.name}, status={self.status})>"


class Supplier(Base):
    """Product supplier."""
    __tablename__ = 'vitalvida_suppliers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_name = Column(String(255), nullable=False)

    products = relationship("Product", back_populates="supplier")


class Product(Base):
    """
    VitalVida product.

    `code` doubles as the bin SKU on the Role side.
    """
    __tablename__ = 'vitalvida_products'

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(128), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    stock_level = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=True)
    max_stock = Column(Integer, nullable=True)
    status = Column(String(32), nullable=False, default='In Stock',
                    comment='In Stock, Low Stock, Out of Stock, Discontinued')
    supplier_id = Column(Integer, ForeignKey('vitalvida_suppliers.id'), nullable=True)
    agent_id = Column(Integer, ForeignKey('vitalvida_delivery_agents.id'), nullable=True)

    supplier = relationship("Supplier", back_populates="products")

    def __repr__(self):
        return f"<Product(id={self.id}, code={self.code})>"


class StockAllocation(Base):
    """Stock allocated from central inventory to a delivery agent."""
    __tablename__ = 'vitalvida_stock_allocations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey('vitalvida_delivery_agents.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('vitalvida_products.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    allocated_at = Column(DateTime, nullable=False, server_default=func.now())
    status = Column(String(32), nullable=False, default='allocated')

    agent = relationship("DeliveryAgent", back_populates="allocations")
    product = relationship("Product")


class AuditFlag(Base):
    """Auditor flag raised against a delivery agent."""
    __tablename__ = 'vitalvida_audit_flags'

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey('vitalvida_delivery_agents.id', ondelete='CASCADE'),
                      nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('vitalvida_products.id'), nullable=True)
    flag_type = Column(String(64), nullable=False)
    priority = Column(String(16), nullable=False, default='MEDIUM',
                      comment='LOW, MEDIUM, HIGH, CRITICAL')
    description = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    agent = relationship("DeliveryAgent", back_populates="audit_flags")


# ---------------------------------------------------------------------------
# Role compliance / bin domain
# ---------------------------------------------------------------------------


class RoleDeliveryAgent(Base):
    """
    Delivery agent as seen by the Role compliance system.

    Linked to the VitalVida agent through `external_id`.
    """
    __tablename__ = 'role_delivery_agents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Integer, unique=True, index=True, nullable=True,
                         comment='VitalVida delivery agent id')
    agent_name = Column(String(255), nullable=False)
    contact_number = Column(String(32), nullable=True)
    zone = Column(String(64), nullable=False, default='Lagos', index=True)
    status = Column(String(32), nullable=False, default='active')
    performance_score = Column(Float, nullable=True)
    compliance_score = Column(Integer, nullable=False, default=100)
    violation_count = Column(Integer, nullable=False, default=0)

    allocation_restricted = Column(Boolean, nullable=False, default=False)
    training_required = Column(Boolean, nullable=False, default=False)
    training_type = Column(String(64), nullable=True)
    training_assigned_at = Column(DateTime, nullable=True)

    created_via_sync = Column(Boolean, nullable=False, default=False)
    sync_timestamp = Column(DateTime, nullable=True)
    suspended_at = Column(DateTime, nullable=True)
    last_warning_at = Column(DateTime, nullable=True)
    performance_updated_at = Column(DateTime, nullable=True)
    status_updated_at = Column(DateTime, nullable=True)
    location_updated_at = Column(DateTime, nullable=True)
    compliance_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    bins = relationship("Bin", back_populates="agent", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<RoleDeliveryAgent(id={self.id}, external_id={self.external_id})>"


class Bin(Base):
    """
    Per-agent stock container for one product SKU.
    """
    __tablename__ = 'bins'

    id = Column(Integer, primary_key=True, autoincrement=True)
    da_id = Column(Integer, ForeignKey('role_delivery_agents.id', ondelete='CASCADE'),
                   nullable=False, index=True)
    product_sku = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=True)
    product_category = Column(String(128), nullable=True)
    supplier_name = Column(String(255), nullable=True)
    zone = Column(String(64), nullable=True)

    current_stock = Column(Integer, nullable=False, default=0)
    min_threshold = Column(Integer, nullable=False, default=10)
    max_capacity = Column(Integer, nullable=False, default=1000)
    unit_price = Column(Numeric(12, 2), nullable=True)
    utilization_rate = Column(Float, nullable=False, default=0.0)

    bin_status = Column(String(32), nullable=False, default='active',
                        comment='active, warning, critical, inactive, suspended')
    suspended_at = Column(DateTime, nullable=True)
    suspension_reason = Column(String(255), nullable=True)
    allocation_restricted = Column(Boolean, nullable=False, default=False)
    restriction_reason = Column(String(255), nullable=True)
    restricted_at = Column(DateTime, nullable=True)

    allocated_at = Column(DateTime, nullable=True)
    last_allocation_at = Column(DateTime, nullable=True)
    allocation_count = Column(Integer, nullable=False, default=0)
    total_allocated_today = Column(Integer, nullable=False, default=0)
    zone_updated_at = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, nullable=True)

    agent = relationship("RoleDeliveryAgent", back_populates="bins")

    __table_args__ = (
        UniqueConstraint('da_id', 'product_sku', name='uq_bins_da_sku'),
    )

    def __repr__(self):
        return f"<Bin(id={self.id}, da_id={self.da_id}, sku={self.product_sku})>"


class EnforcementAction(Base):
    """Enforcement executed against a Role agent."""
    __tablename__ = 'enforcement_actions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    da_id = Column(Integer, ForeignKey('role_delivery_agents.id', ondelete='CASCADE'),
                   nullable=True, index=True)
    agent_id = Column(Integer, nullable=True, comment='VitalVida agent id for manual triggers')
    action_type = Column(String(64), nullable=False)
    severity = Column(String(16), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default='executed')
    executed_by = Column(String(64), nullable=False, default='system')
    executed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class ComplianceViolation(Base):
    """Compliance violation recorded on a Role agent."""
    __tablename__ = 'compliance_violations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    da_id = Column(Integer, ForeignKey('role_delivery_agents.id', ondelete='CASCADE'),
                   nullable=False, index=True)
    violation_type = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(String(16), nullable=False)
    issued_at = Column(DateTime, nullable=False)
    auto_generated = Column(Boolean, nullable=False, default=False)


class TrainingAssignment(Base):
    """Mandatory training assigned to a Role agent."""
    __tablename__ = 'training_assignments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    da_id = Column(Integer, ForeignKey('role_delivery_agents.id', ondelete='CASCADE'),
                   nullable=False, index=True)
    training_type = Column(String(64), nullable=False)
    reason = Column(Text, nullable=True)
    assigned_at = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    status = Column(String(32), nullable=False, default='assigned')


class AgentActivityLog(Base):
    """Audit trail of system changes to a Role agent."""
    __tablename__ = 'agent_activity_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    da_id = Column(Integer, ForeignKey('role_delivery_agents.id', ondelete='CASCADE'),
                   nullable=False, index=True)
    action_type = Column(String(64), nullable=False)
    action_details = Column(JSONType, nullable=True)
    performed_by = Column(String(64), nullable=False, default='system')
    performed_at = Column(DateTime, nullable=False)


class SystemAlert(Base):
    """Operational alert (capacity, compliance drop, sync health)."""
    __tablename__ = 'system_alerts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(64), nullable=False, index=True)
    severity = Column(String(16), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSONType, nullable=True)
    zone = Column(String(64), nullable=True)
    requires_action = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class SystemNotification(Base):
    """Notification addressed to management or an approver role."""
    __tablename__ = 'system_notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSONType, nullable=True)
    recipient_role = Column(String(32), nullable=True)
    priority = Column(String(16), nullable=False, default='normal')
    requires_acknowledgment = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class ZoneNotification(Base):
    """Notification for a zone manager."""
    __tablename__ = 'zone_notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    zone = Column(String(64), nullable=False, index=True)
    type = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSONType, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Finance threshold controls
# ---------------------------------------------------------------------------


class ThresholdViolation(Base):
    """Cost blocked by threshold validation."""
    __tablename__ = 'threshold_violations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    cost_type = Column(String(32), nullable=False)
    cost_category = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    threshold_limit = Column(Numeric(12, 2), nullable=False)
    overage_amount = Column(Numeric(12, 2), nullable=False, default=0)
    violation_details = Column(JSONType, nullable=True)
    status = Column(String(32), nullable=False, default='blocked')
    created_by = Column(Integer, nullable=True)
    reference_id = Column(String(64), nullable=True)
    reference_type = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    escalation = relationship("EscalationRequest", back_populates="violation", uselist=False)


class EscalationRequest(Base):
    """
    Expense approval request.

    `decisions` maps each required approver role (fc, gm, ceo) to
    {"decision": pending|approved|rejected, "decided_at": iso, "reason": str}.
    """
    __tablename__ = 'escalation_requests'

    id = Column(Integer, primary_key=True, autoincrement=True)
    threshold_violation_id = Column(Integer, ForeignKey('threshold_violations.id'),
                                    nullable=True, index=True)
    escalation_type = Column(String(64), nullable=False)
    amount_requested = Column(Numeric(12, 2), nullable=False)
    threshold_limit = Column(Numeric(12, 2), nullable=False)
    overage_amount = Column(Numeric(12, 2), nullable=False, default=0)
    approval_required = Column(JSONType, nullable=False)
    decisions = Column(JSONType, nullable=False)
    escalation_reason = Column(Text, nullable=True)
    business_justification = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default='pending_approval', index=True,
                    comment='pending_approval, approved, rejected, expired')
    priority = Column(String(16), nullable=False, default='normal')
    expires_at = Column(DateTime, nullable=False)
    final_decision_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    violation = relationship("ThresholdViolation", back_populates="escalation")


class SalaryDeduction(Base):
    """Salary deduction levied for a threshold breach."""
    __tablename__ = 'salary_deductions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    violation_id = Column(Integer, ForeignKey('threshold_violations.id'), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String(64), nullable=False,
                    comment='unauthorized_payment, rejected_escalation, expired_escalation')
    description = Column(Text, nullable=True)
    deduction_date = Column(DateTime, nullable=False)
    processed_date = Column(DateTime, nullable=True)
    status = Column(String(32), nullable=False, default='pending', index=True,
                    comment='pending, processed, cancelled')
    deduction_metadata = Column('metadata', JSONType, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Pipeline bookkeeping
# ---------------------------------------------------------------------------


class SyncEventLog(Base):
    """
    Outcome of one listener for one domain event.

    A `processed` row makes redelivery of the same event a no-op for that listener.
    """
    __tablename__ = 'sync_event_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(64), nullable=False)
    event_type = Column(String(64), nullable=False)
    listener = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, comment='processed, failed')
    attempts = Column(Integer, nullable=False, default=1)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('event_id', 'listener', name='uq_sync_event_listener'),
        Index('idx_sync_event_logs_status_updated', 'status', 'updated_at'),
    )

    def __repr__(self):
        return f"<SyncEventLog(event_id={self.event_id}, listener={self.listener}, status={self.status})>"
