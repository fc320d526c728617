from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime

from shortener.config import settings
from shortener.utils import normalize_url, is_valid_url, as_utc, utc_now

class TokenData(BaseModel):
    user_id: int
    username: Optional[str] = None

class UrlCreate(BaseModel):
    original_url: str = Field(..., max_length=settings.MAX_URL_LENGTH,
                              description="Оригинальный URL для сокращения")
    custom_code: Optional[str] = Field(None, max_length=settings.MAX_CUSTOM_CODE_LENGTH,
                                       description="Пользовательский код короткой ссылки")

    @field_validator('original_url')
    def validate_url(cls, v):
        v = normalize_url(v)
        if not is_valid_url(v):
            raise ValueError("Недействительный URL")
        return v

class UrlResponse(BaseModel):
    id: int
    original_url: str
    short_code: str
    short_url: str
    created_at: datetime
    click_count: int
    last_accessed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('created_at', 'last_accessed_at')
    def ensure_utc(cls, v):
        return as_utc(v)

class ClickInfo(BaseModel):
    clicked_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('clicked_at')
    def ensure_utc(cls, v):
        return as_utc(v)

class UrlStatistics(BaseModel):
    id: int
    original_url: str
    short_code: str
    total_clicks: int
    created_at: datetime
    last_accessed_at: Optional[datetime] = None
    recent_clicks: List[ClickInfo] = []
    clicks_by_country: Dict[str, int] = {}

    @field_validator('created_at', 'last_accessed_at')
    def ensure_utc(cls, v):
        return as_utc(v)

class ClickEvent(BaseModel):
    """Событие перехода, передаваемое фоновому обработчику"""
    mapping_id: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    clicked_at: datetime = Field(default_factory=utc_now)
