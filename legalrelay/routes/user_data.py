from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from legalrelay.deps import get_store
from legalrelay.errors import InputValidationError
from legalrelay.schemas import SaveUserDataRequest
from legalrelay.store import UserDataStore

router = APIRouter(prefix="/api", tags=["user-data"])

SAVE_MESSAGES = {
    "insert": "User data saved successfully",
    "update": "User data updated successfully",
}


@router.post("/save-user-data")
def save_user_data(
    payload: SaveUserDataRequest,
    store: UserDataStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Insert or update the snapshot stored under ``(email, serial)``.
    """
    email = (payload.email or "").strip()
    if not email or payload.serial is None:
        raise InputValidationError("Email and serial are required", error="Missing input")

    row, operation = store.save(email, payload.serial, payload.data)
    return {
        "success": True,
        "message": SAVE_MESSAGES[operation],
        "operation": operation,
        "data": row,
    }


@router.get("/get-user-data/{email}")
def get_user_data(email: str, store: UserDataStore = Depends(get_store)) -> Dict[str, Any]:
    return {"success": True, "data": store.get(email)}


@router.delete("/delete-user-data/{email}/{serial}")
def delete_user_data(
    email: str,
    serial: int,
    store: UserDataStore = Depends(get_store),
) -> Dict[str, Any]:
    store.delete(email, serial)
    return {"success": True, "message": "User data deleted successfully"}
