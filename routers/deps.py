from fastapi import Depends
from sqlalchemy.orm import Session

from database.connection import get_db
from routers.auth import get_current_principal
from schemas.user import Principal
from services.assignment import AssignmentCoordinator
from services.authorization import AccessGuard
from services.order_lifecycle import OrderLifecycleEngine
from services.order_store import OrderStore, CourierDirectory


def require_roles(guard: AccessGuard):
    """Dependency that authenticates the caller and applies ``guard``'s role check."""
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        guard.authorize(principal.role, principal.id)
        return principal
    return dependency


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_courier_directory(db: Session = Depends(get_db)) -> CourierDirectory:
    return CourierDirectory(db)


def get_lifecycle_engine(store: OrderStore = Depends(get_order_store)) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(store)


def get_assignment_coordinator(
    store: OrderStore = Depends(get_order_store),
    directory: CourierDirectory = Depends(get_courier_directory)
) -> AssignmentCoordinator:
    return AssignmentCoordinator(store, directory)
