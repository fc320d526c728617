from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.responses import RedirectResponse
from typing import Optional, List

from shortener.models import UrlMapping
from shortener.schemas import UrlCreate, UrlResponse, UrlStatistics, TokenData
from shortener.utils import build_short_url
from shortener.dependencies import (
    get_current_user, require_user, get_client_info, get_base_url,
    get_url_service, get_redirect_resolver, get_stats_aggregator
)
from shortener.exceptions import (
    ValidationError, ConflictError, NotFoundError, AuthorizationError, CodeGenerationError
)
from shortener.redirects import RedirectResolver
from shortener.services import UrlService
from shortener.stats import StatsAggregator

# Обработчики синхронные: хранилище блокирующее, FastAPI выполняет их в пуле потоков
router = APIRouter(tags=["urls"])

NOT_FOUND = "Ссылка не найдена"


def to_response(mapping: UrlMapping, base_url: str) -> UrlResponse:
    return UrlResponse(
        id=mapping.id,
        original_url=mapping.original_url,
        short_code=mapping.short_code,
        short_url=build_short_url(mapping.short_code, base_url),
        created_at=mapping.created_at,
        click_count=mapping.click_count,
        last_accessed_at=mapping.last_accessed_at
    )

# Создание короткой ссылки
@router.post("/urls", response_model=UrlResponse, status_code=status.HTTP_201_CREATED)
def create_short_url(
    url_data: UrlCreate,
    base_url: str = Depends(get_base_url),
    current_user: Optional[TokenData] = Depends(get_current_user),
    service: UrlService = Depends(get_url_service)
):
    """Создает короткую ссылку"""
    owner_id = current_user.user_id if current_user else None
    try:
        mapping = service.create_short_url(url_data.original_url, url_data.custom_code, owner_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except CodeGenerationError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Не удалось создать короткую ссылку"
        )

    return to_response(mapping, base_url)

# Ссылки текущего пользователя
@router.get("/urls/mine", response_model=List[UrlResponse])
def list_my_urls(
    base_url: str = Depends(get_base_url),
    current_user: TokenData = Depends(require_user),
    service: UrlService = Depends(get_url_service)
):
    """Возвращает ссылки пользователя, новые первыми"""
    return [to_response(mapping, base_url) for mapping in service.list_user_urls(current_user.user_id)]

# Статистика по ссылке
@router.get("/urls/{short_code}/stats", response_model=UrlStatistics)
def get_url_stats(
    short_code: str,
    aggregator: StatsAggregator = Depends(get_stats_aggregator)
):
    """Получает статистику переходов по короткой ссылке"""
    try:
        return aggregator.get_statistics(short_code)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)

# Удаление ссылки
@router.delete("/urls/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
def delete_url(
    short_code: str,
    current_user: TokenData = Depends(require_user),
    service: UrlService = Depends(get_url_service)
):
    """Удаляет короткую ссылку; удалить может только владелец"""
    try:
        service.delete_url(short_code, current_user.user_id)
    except (NotFoundError, AuthorizationError):
        # Не раскрываем чужому пользователю, существует ли код
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ссылка не найдена или нет прав на ее удаление"
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Перенаправление по короткой ссылке
@router.get("/{short_code}", include_in_schema=False)
def redirect_to_url(
    short_code: str,
    client_info: dict = Depends(get_client_info),
    resolver: RedirectResolver = Depends(get_redirect_resolver)
):
    """Перенаправляет по короткой ссылке; клик записывается в фоне"""
    try:
        original_url = resolver.resolve(
            short_code,
            ip_address=client_info.get("ip_address"),
            user_agent=client_info.get("user_agent")
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)

    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
