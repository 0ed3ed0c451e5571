from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from core.exceptions import BaseCustomException, NotFoundError
from database.connection import get_db
from models.order import Order, DeliveryStatus
from models.user import UserRole
from routers.auth import get_current_principal
from routers.deps import (
    require_roles,
    get_order_store,
    get_courier_directory,
    get_lifecycle_engine,
    get_assignment_coordinator
)
from schemas.order import (
    OrderResponse,
    OrderStatsResponse,
    AssignOrderRequest,
    DeliveryStatusUpdateRequest,
    OrderStatusUpdateRequest
)
from schemas.user import Principal, CourierResponse, ToggleActiveRequest
from services.assignment import AssignmentCoordinator
from services.authorization import ADMIN_ONLY, STAFF
from services.order_lifecycle import (
    OrderLifecycleEngine,
    ACTIVE_DELIVERY_STATUSES,
    parse_delivery_status
)
from services.order_store import OrderStore, CourierDirectory

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/orders", response_model=List[OrderResponse])
def list_orders(
    delivery_status: Optional[str] = Query(None, alias="deliveryStatus"),
    principal: Principal = Depends(require_roles(ADMIN_ONLY)),
    store: OrderStore = Depends(get_order_store)
):
    """All orders, newest first (admin only)."""
    try:
        criteria = []
        if delivery_status:
            criteria.append(Order.delivery_status == parse_delivery_status(delivery_status))
        orders = store.list_orders(*criteria)
        return [OrderResponse.model_validate(order) for order in orders]
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Error listing orders: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve orders"
        )

@router.post("/orders/{order_id}/assign", response_model=OrderResponse)
def assign_order(
    order_id: str,
    assign_request: AssignOrderRequest,
    principal: Principal = Depends(get_current_principal),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator),
    db: Session = Depends(get_db)
):
    """Assign an order to a delivery agent, replacing any previous assignment."""
    try:
        order = coordinator.admin_assign(order_id, assign_request.courier_id, principal.role, principal.id)
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Assign order error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to assign order"
        )

@router.put("/orders/{order_id}/delivery-status", response_model=OrderResponse)
def update_delivery_status(
    order_id: str,
    update_request: DeliveryStatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    db: Session = Depends(get_db)
):
    """Update delivery status (admin, or the courier assigned to the order)."""
    try:
        order = engine.set_delivery_status(
            order_id,
            update_request.delivery_status,
            principal.role,
            principal.id
        )
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Update delivery status error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update delivery status"
        )

@router.post("/orders/{order_id}/mark-delivered", response_model=OrderResponse)
def mark_delivered(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    db: Session = Depends(get_db)
):
    """Close an order as delivered (admin, or the courier assigned to the order)."""
    try:
        order = engine.mark_delivered(order_id, principal.role, principal.id)
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Mark delivered error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark order as delivered"
        )

@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    update_request: OrderStatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    db: Session = Depends(get_db)
):
    """Confirm or ship an order (admin only)."""
    try:
        order = engine.set_order_status(order_id, update_request.status, principal.role, principal.id)
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Update order status error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order"
        )

@router.get("/stats", response_model=OrderStatsResponse)
def get_stats(
    principal: Principal = Depends(require_roles(STAFF)),
    store: OrderStore = Depends(get_order_store),
    directory: CourierDirectory = Depends(get_courier_directory)
):
    """Order counters; couriers only see their own assignments."""
    try:
        if principal.role == UserRole.ADMIN:
            return OrderStatsResponse(
                total_orders=store.count_orders(),
                pending_deliveries=store.count_orders(
                    Order.delivery_status.in_([DeliveryStatus.PENDING, *ACTIVE_DELIVERY_STATUSES])
                ),
                delivered_orders=store.count_orders(Order.delivery_status == DeliveryStatus.DELIVERED),
                active_delivery_agents=directory.count_active_couriers()
            )

        mine = Order.assigned_to_id == principal.id
        return OrderStatsResponse(
            total_orders=store.count_orders(mine),
            pending_deliveries=store.count_orders(mine, Order.delivery_status.in_(ACTIVE_DELIVERY_STATUSES)),
            delivered_orders=store.count_orders(mine, Order.delivery_status == DeliveryStatus.DELIVERED),
            active_delivery_agents=0
        )
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Stats error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch stats"
        )

@router.get("/delivery-users", response_model=List[CourierResponse])
def list_delivery_users(
    principal: Principal = Depends(require_roles(ADMIN_ONLY)),
    directory: CourierDirectory = Depends(get_courier_directory)
):
    """Delivery agents with their number of open assignments."""
    try:
        open_counts = directory.open_assignment_counts()
        result = []
        for courier in directory.list_couriers():
            response = CourierResponse.model_validate(courier)
            response.open_assignments = open_counts.get(courier.id, 0)
            result.append(response)
        return result
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Error listing delivery users: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve delivery users"
        )

@router.post("/delivery-users/{user_id}/toggle-active", response_model=CourierResponse)
def toggle_delivery_user_active(
    user_id: str,
    toggle_request: ToggleActiveRequest,
    principal: Principal = Depends(require_roles(ADMIN_ONLY)),
    directory: CourierDirectory = Depends(get_courier_directory)
):
    """Enable or disable a delivery agent; current assignments are kept."""
    try:
        courier = directory.set_active(user_id, toggle_request.is_active)
        if courier is None:
            raise NotFoundError("Delivery user", user_id)
        response = CourierResponse.model_validate(courier)
        response.open_assignments = directory.open_assignment_counts().get(courier.id, 0)
        return response
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Toggle active error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update delivery user"
        )
