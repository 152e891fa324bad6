"""
Stock Allocation Endpoints
POST /api/v1/allocations - Allocate product stock to a delivery agent
GET /api/v1/allocations/{allocation_id} - Get an allocation
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from ...db.models import DeliveryAgent, Product, StockAllocation
from ...events.dispatcher import EventDispatcher
from ...events.schemas import (
    AgentSnapshot,
    AllocationSnapshot,
    ProductSnapshot,
    StockAllocatedEvent,
)
from ..dependencies import get_db, get_event_dispatcher
from ..errors import DispatchError, InvalidRequestError, ResourceNotFoundError
from ..schemas.agents import AllocationCreate, AllocationCreatedResponse, AllocationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/allocations", tags=["allocations"])


def product_stock_status(product: Product) -> str:
    if product.stock_level <= 0:
        return "Out of Stock"
    if product.min_stock is not None and product.stock_level <= product.min_stock:
        return "Low Stock"
    return "In Stock"


def select_product_for_update(product_id: int) -> Select:
    """Product row locked until the allocation commits (SELECT ... FOR UPDATE)."""
    return select(Product).where(Product.id == product_id).with_for_update()


@router.post("", response_model=AllocationCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_allocation(
    request: AllocationCreate,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> AllocationCreatedResponse:
    """
    Allocate stock to an agent.

    The product's central stock is decremented and a StockAllocatedEvent is
    published so the agent's Role bin receives the units.
    """
    agent = db.get(DeliveryAgent, request.agent_id)
    if agent is None:
        raise ResourceNotFoundError("Delivery agent", request.agent_id)

    product = db.scalars(select_product_for_update(request.product_id)).first()
    if product is None:
        raise ResourceNotFoundError("Product", request.product_id)

    if product.stock_level < request.quantity:
        raise InvalidRequestError(
            "Insufficient stock for allocation",
            details={
                "product_id": product.id,
                "requested": request.quantity,
                "available": product.stock_level,
            },
        )

    product.stock_level -= request.quantity
    if product.status != "Discontinued":
        product.status = product_stock_status(product)

    allocation = StockAllocation(
        agent_id=agent.id,
        product_id=product.id,
        quantity=request.quantity,
        allocated_at=datetime.utcnow(),
        status="allocated",
    )
    db.add(allocation)
    db.commit()
    db.refresh(allocation)

    logger.info(
        f"Allocated {allocation.quantity} x {product.code} to agent {agent.id}",
        extra={"allocation_id": allocation.id, "remaining_stock": product.stock_level},
    )

    event = StockAllocatedEvent(
        allocation=AllocationSnapshot.model_validate(allocation),
        agent=AgentSnapshot.model_validate(agent),
        product=ProductSnapshot.from_model(product),
    )
    try:
        task_ids = dispatcher.dispatch(event)
    except Exception as e:
        logger.error(f"Failed to publish allocation {allocation.id}: {e}", exc_info=True)
        raise DispatchError(
            "Allocation saved but the bin sync could not be queued",
            details={"allocation_id": allocation.id},
        )

    return AllocationCreatedResponse(
        allocation=AllocationResponse.model_validate(allocation),
        remaining_stock=product.stock_level,
        task_ids=task_ids,
    )


@router.get("/{allocation_id}", response_model=AllocationResponse)
def get_allocation(allocation_id: int, db: Session = Depends(get_db)) -> StockAllocation:
    allocation = db.get(StockAllocation, allocation_id)
    if allocation is None:
        raise ResourceNotFoundError("Stock allocation", allocation_id)
    return allocation
