"""
api/routes/v1/users.py -- User administration endpoints.

Routes:
  GET /api/v1/users        -- list all users (admin)
  GET /api/v1/users/{id}   -- single user (admin, lead-guide)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import UserDetailResponse, UserListResponse, UserResponse
from auth.dependencies import restrict_to
from auth.models import User
from auth.store import UserStore

router = APIRouter()


@router.get("/users", response_model=UserListResponse)
def list_users(request: Request, current_user: User = Depends(restrict_to({"admin"}))) -> UserListResponse:
    store: UserStore = request.app.state.user_store
    users = [UserResponse.from_user(u) for u in store.list_users()]
    return UserListResponse(results=len(users), users=users)


@router.get("/users/{user_id}", response_model=UserDetailResponse)
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(restrict_to({"admin", "lead-guide"})),
) -> UserDetailResponse:
    store: UserStore = request.app.state.user_store
    user = store.find_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="No user found with that ID.")
    return UserDetailResponse(user=UserResponse.from_user(user))
