import logging
from typing import List, Optional

from shortener.codes import ShortCodeGenerator
from shortener.exceptions import (
    AuthorizationError, CodeGenerationError, CodeTakenError, InvalidUrlError,
    NotFoundError, TransientStoreConflict
)
from shortener.models import UrlMapping
from shortener.store import UrlMappingStore
from shortener.utils import normalize_url, is_valid_url, utc_now

logger = logging.getLogger(__name__)


class UrlService:
    """Создание, список и удаление коротких ссылок"""

    def __init__(self, store: UrlMappingStore, generator: Optional[ShortCodeGenerator] = None):
        self.store = store
        self.generator = generator or ShortCodeGenerator()

    def create_short_url(
        self,
        original_url: str,
        custom_code: Optional[str] = None,
        owner_id: Optional[int] = None,
    ) -> UrlMapping:
        """Создает короткую ссылку.

        Без пользовательского кода повторный запрос того же URL тем же
        владельцем возвращает существующую ссылку. Конфликт уникальности
        при вставке сгенерированного кода приводит к новой генерации.
        """
        normalized_url = normalize_url(original_url)
        if not is_valid_url(normalized_url):
            raise InvalidUrlError("Please provide a valid URL")

        if custom_code is not None and custom_code.strip():
            short_code = self.generator.generate(self.store.exists_by_code, custom_code=custom_code)
            try:
                return self.store.insert(self._new_mapping(normalized_url, short_code, owner_id))
            except TransientStoreConflict:
                # Код заняли между проверкой и вставкой
                raise CodeTakenError(short_code)

        existing = self.store.find_by_url_and_owner(normalized_url, owner_id)
        if existing:
            return existing

        for attempt in range(self.generator.max_attempts):
            short_code = self.generator.generate(self.store.exists_by_code)
            try:
                mapping = self.store.insert(self._new_mapping(normalized_url, short_code, owner_id))
            except TransientStoreConflict:
                logger.warning("Short code %s collided on insert (attempt %d)", short_code, attempt + 1)
                continue
            logger.info("Created short code %s for owner %s", mapping.short_code, owner_id)
            return mapping

        logger.error("Could not allocate a unique short code after %d attempts", self.generator.max_attempts)
        raise CodeGenerationError("Could not allocate a unique short code")

    def list_user_urls(self, owner_id: int) -> List[UrlMapping]:
        return self.store.find_by_owner(owner_id)

    def delete_url(self, short_code: str, owner_id: int) -> None:
        mapping = self.store.find_by_code(short_code)
        if mapping is None:
            raise NotFoundError(f"Short code '{short_code}' not found")
        if mapping.owner_id is None or mapping.owner_id != owner_id:
            raise AuthorizationError(f"User {owner_id} does not own '{short_code}'")

        self.store.delete(mapping)
        logger.info("Deleted short code %s by owner %s", short_code, owner_id)

    @staticmethod
    def _new_mapping(original_url: str, short_code: str, owner_id: Optional[int]) -> UrlMapping:
        return UrlMapping(
            original_url=original_url,
            short_code=short_code,
            created_at=utc_now(),
            click_count=0,
            owner_id=owner_id
        )
