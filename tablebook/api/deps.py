"""Shared FastAPI dependencies"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.config import Settings
from tablebook.database import get_db
from tablebook.engine.booking import BookingService
from tablebook.engine.notifier import Notifier
from tablebook.engine.settings_store import load_restaurant_config
from tablebook.engine.timeutil import Clock, utcnow
from tablebook.engine.waitlist import WaitlistManager
from tablebook.gateways.base import PaymentGateway
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.settings import RestaurantConfig

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Settings built once at startup"""
    return request.app.state.settings


def get_clock() -> Clock:
    return utcnow


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


async def get_restaurant_config(db: AsyncSession = Depends(get_db)) -> RestaurantConfig:
    return await load_restaurant_config(db)


async def get_current_staff(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> StaffIdentity:
    """Verify a staff bearer token issued by the auth service"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise credentials_exception

    if payload.get("sub") is None or payload.get("type", "access") != "access":
        raise credentials_exception
    return StaffIdentity(sub=str(payload["sub"]), name=payload.get("name"), role=payload.get("role", "staff"))


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    config: RestaurantConfig = Depends(get_restaurant_config),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(db, config, gateway, notifier, clock)


def get_waitlist_manager(
    db: AsyncSession = Depends(get_db),
    config: RestaurantConfig = Depends(get_restaurant_config),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> WaitlistManager:
    return WaitlistManager(db, config, notifier, clock)
