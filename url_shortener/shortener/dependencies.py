from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from shortener.database import SessionLocal
from shortener.schemas import TokenData
from shortener.config import settings
from shortener.utils import extract_client_info
from shortener.store import UrlMappingStore
from shortener.clicks import ClickDispatcher
from shortener.services import UrlService
from shortener.redirects import RedirectResolver
from shortener.stats import StatsAggregator

# Токены выпускает внешний сервис аутентификации, здесь они только проверяются
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)

url_store = UrlMappingStore(SessionLocal)

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[TokenData]:
    """Получает идентичность вызывающего по токену; без токена - аноним"""
    if token is None:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Недействительные учетные данные",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        if payload.get("user_id") is None:
            raise credentials_exception

        return TokenData(user_id=payload["user_id"], username=payload.get("sub"))
    except (JWTError, ValidationError):
        raise credentials_exception

async def require_user(current_user: Optional[TokenData] = Depends(get_current_user)) -> TokenData:
    """Требует аутентифицированного пользователя"""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Требуется аутентификация",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user

def get_store() -> UrlMappingStore:
    return url_store

def get_click_dispatcher(request: Request) -> ClickDispatcher:
    return request.app.state.click_dispatcher

def get_url_service(store: UrlMappingStore = Depends(get_store)) -> UrlService:
    return UrlService(store)

def get_redirect_resolver(
    store: UrlMappingStore = Depends(get_store),
    dispatcher: ClickDispatcher = Depends(get_click_dispatcher)
) -> RedirectResolver:
    return RedirectResolver(store, dispatcher)

def get_stats_aggregator(store: UrlMappingStore = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)

async def get_client_info(request: Request):
    """Получает информацию о клиенте из запроса"""
    return extract_client_info(request)

def get_base_url(request: Request) -> str:
    """Базовый URL для коротких ссылок: BASE_URL или схема и хост запроса"""
    return settings.BASE_URL or f"{request.url.scheme}://{request.url.netloc}"
