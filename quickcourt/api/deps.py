from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from quickcourt.core.security import decode_token
from quickcourt.services.booking_service import BookingManager
from quickcourt.services.booking_store import SqlBookingStore

bearer = HTTPBearer(auto_error=False)

_manager: BookingManager | None = None

def get_current_user_id(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id

def get_booking_manager() -> BookingManager:
    """One manager per process; tests override this dependency."""
    global _manager
    if _manager is None:
        _manager = BookingManager(SqlBookingStore())
    return _manager
