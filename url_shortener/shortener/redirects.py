from typing import Optional

from shortener.clicks import ClickDispatcher
from shortener.exceptions import NotFoundError
from shortener.schemas import ClickEvent
from shortener.store import UrlMappingStore


class RedirectResolver:
    """Горячий путь редиректа: только чтение, запись клика уходит в фон"""

    def __init__(self, store: UrlMappingStore, dispatcher: ClickDispatcher):
        self.store = store
        self.dispatcher = dispatcher

    def resolve(self, short_code: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> str:
        mapping = self.store.find_by_code(short_code)
        if mapping is None:
            raise NotFoundError(f"Short code '{short_code}' not found")

        self.dispatcher.dispatch(ClickEvent(
            mapping_id=mapping.id,
            ip_address=ip_address,
            user_agent=user_agent
        ))
        return mapping.original_url
