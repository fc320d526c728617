from shortener.config import settings
from shortener.exceptions import NotFoundError
from shortener.schemas import ClickInfo, UrlStatistics
from shortener.store import UrlMappingStore


class StatsAggregator:
    """Собирает статистику по ссылке.

    total_clicks берется из счетчика ссылки, а не из числа строк: фоновая
    запись кликов может отставать. Гистограмма по странам строится по всем
    кликам, а не только по последним.
    """

    def __init__(
        self,
        store: UrlMappingStore,
        recent_limit: int = settings.RECENT_CLICKS_LIMIT,
        top_countries: int = settings.TOP_COUNTRIES_LIMIT,
    ):
        self.store = store
        self.recent_limit = recent_limit
        self.top_countries = top_countries

    def get_statistics(self, short_code: str) -> UrlStatistics:
        mapping = self.store.find_by_code(short_code)
        if mapping is None:
            raise NotFoundError(f"Short code '{short_code}' not found")

        recent = self.store.recent_clicks(mapping.id, self.recent_limit)
        countries = self.store.aggregate_country_counts(mapping.id, self.top_countries)

        return UrlStatistics(
            id=mapping.id,
            original_url=mapping.original_url,
            short_code=mapping.short_code,
            total_clicks=mapping.click_count,
            created_at=mapping.created_at,
            last_accessed_at=mapping.last_accessed_at,
            recent_clicks=[ClickInfo.model_validate(click) for click in recent],
            clicks_by_country=dict(countries)
        )
