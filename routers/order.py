from fastapi import APIRouter, Depends, HTTPException, status
import logging

from core.exceptions import BaseCustomException, NotFoundError
from routers.deps import require_roles, get_order_store
from schemas.order import OrderResponse, PendingCountResponse
from schemas.user import Principal
from services.authorization import STAFF, ORDER_VIEW_GUARD
from services.order_store import OrderStore

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/pending-count", response_model=PendingCountResponse)
def get_pending_count(
    principal: Principal = Depends(require_roles(STAFF)),
    store: OrderStore = Depends(get_order_store)
):
    """Number of orders still waiting for a courier. Polled by staff clients."""
    try:
        return PendingCountResponse(pending_count=store.pending_count())
    except Exception as e:
        logger.error(f"Error counting pending orders: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to count pending orders"
        )

@router.get("/{order_id}", response_model=OrderResponse)
def get_order_details(
    order_id: str,
    principal: Principal = Depends(require_roles(ORDER_VIEW_GUARD)),
    store: OrderStore = Depends(get_order_store)
):
    """Get detailed order information."""
    try:
        order = store.find_order(order_id)
        if not order:
            raise NotFoundError("Order", order_id)

        ORDER_VIEW_GUARD.authorize(principal.role, principal.id, order)
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Error getting order details: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve order details"
        )
