import re
from datetime import datetime, timedelta, timezone
from typing import Optional
import validators
from jose import jwt
from shortener.config import settings

SCHEMES = ("http://", "https://")

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Приводит datetime к UTC; naive-значения (SQLite) считаются UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def normalize_url(url: str) -> str:
    """Добавляет https:// если схема не указана; регистр схемы сохраняется"""
    url = url.strip()
    if not url.lower().startswith(SCHEMES):
        url = "https://" + url
    return url

def is_valid_url(url: str) -> bool:
    """Проверяет нормализованный URL на корректность и допустимую длину"""
    if not url or len(url) > settings.MAX_URL_LENGTH:
        return False
    return bool(validators.url(url))

def is_valid_short_code(
    code: Optional[str],
    min_length: int = settings.MIN_CUSTOM_CODE_LENGTH,
    max_length: int = settings.MAX_CUSTOM_CODE_LENGTH,
) -> bool:
    """Проверяет длину и набор символов пользовательского кода"""
    if not code:
        return False
    pattern = rf"[A-Za-z0-9_-]{{{min_length},{max_length}}}"
    return re.fullmatch(pattern, code) is not None

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Создает JWT токен доступа в формате внешнего сервиса аутентификации"""
    to_encode = data.copy()

    if expires_delta:
        expire = utc_now() + expires_delta
    else:
        expire = utc_now() + timedelta(minutes=30)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def build_short_url(short_code: str, base_url: Optional[str] = None) -> str:
    """Создает полный короткий URL с базовым URL приложения"""
    base = base_url or settings.BASE_URL or ""
    return f"{base.rstrip('/')}/{short_code}"

def get_client_ip(request, trust_proxy: Optional[bool] = None) -> Optional[str]:
    """Извлекает IP клиента; заголовки прокси читаются только при TRUST_PROXY_HEADERS"""
    if trust_proxy is None:
        trust_proxy = settings.TRUST_PROXY_HEADERS
    if not trust_proxy:
        return request.client.host if request.client else None

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # "client, proxy1, proxy2": исходный клиент слева
        return forwarded.split(",")[0].strip()

    return request.client.host if request.client else None

def extract_client_info(request) -> dict:
    """Извлекает информацию о клиенте из запроса"""
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent")
    }
