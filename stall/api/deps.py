"""
Stall Service — Shared route dependencies
"""
from fastapi import HTTPException, Request, status

from stall.core.security import is_admin_claims, user_id_from_claims
from stall.core.slot_allocator import SlotAllocator
from stall.payment_gateway import PaymentGateway


def get_allocator(request: Request) -> SlotAllocator:
    return request.app.state.allocator


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def _claims(request: Request) -> dict:
    return getattr(request.state, "user", None) or {}


def current_user_id(request: Request) -> str:
    user_id = user_id_from_claims(_claims(request))
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token carries no user id.")
    return user_id


def current_actor(request: Request) -> str:
    return user_id_from_claims(_claims(request)) or "admin"


def caller_is_admin(request: Request) -> bool:
    return is_admin_claims(_claims(request))
