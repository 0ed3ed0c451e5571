from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from core.exceptions import BaseCustomException
from database.connection import get_db
from routers.auth import get_current_principal
from routers.deps import require_roles, get_assignment_coordinator
from schemas.order import OrderResponse, SelfAssignRequest
from schemas.user import Principal
from services.assignment import AssignmentCoordinator
from services.authorization import COURIER_ONLY

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/available-orders", response_model=List[OrderResponse])
def get_available_orders(
    principal: Principal = Depends(require_roles(COURIER_ONLY)),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator)
):
    """Unassigned orders waiting for a courier, newest first."""
    try:
        orders = coordinator.list_unassigned_orders()
        return [OrderResponse.model_validate(order) for order in orders]
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Get available orders error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch orders"
        )

@router.get("/my-orders", response_model=List[OrderResponse])
def get_my_orders(
    principal: Principal = Depends(require_roles(COURIER_ONLY)),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator)
):
    """Orders assigned to the caller that are not yet delivered."""
    try:
        orders = coordinator.list_assigned_orders(principal.id)
        return [OrderResponse.model_validate(order) for order in orders]
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Get my orders error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch orders"
        )

@router.get("/assigned-orders", response_model=List[OrderResponse])
def get_assigned_orders(
    principal: Principal = Depends(require_roles(COURIER_ONLY)),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator)
):
    """Every order ever assigned to the caller, delivered ones included."""
    try:
        orders = coordinator.list_all_assigned_orders(principal.id)
        return [OrderResponse.model_validate(order) for order in orders]
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Get assigned orders error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch orders"
        )

@router.get("/delivery-history", response_model=List[OrderResponse])
def get_delivery_history(
    principal: Principal = Depends(require_roles(COURIER_ONLY)),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator)
):
    """Orders the caller delivered, most recent delivery first."""
    try:
        orders = coordinator.list_delivery_history(principal.id)
        return [OrderResponse.model_validate(order) for order in orders]
    except BaseCustomException:
        raise
    except Exception as e:
        logger.error(f"Get delivery history error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch delivery history"
        )

@router.post("/self-assign", response_model=OrderResponse)
def self_assign(
    assign_request: SelfAssignRequest,
    principal: Principal = Depends(get_current_principal),
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator),
    db: Session = Depends(get_db)
):
    """Claim an unassigned order. Losing a race returns "Order already assigned"."""
    try:
        order = coordinator.courier_self_assign(assign_request.order_id, principal.id, principal.role)
        return OrderResponse.model_validate(order)
    except BaseCustomException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Self assign error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to assign order"
        )
