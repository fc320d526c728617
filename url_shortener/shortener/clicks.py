import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from datetime import datetime
from typing import Callable, Optional, Set

from shortener.geolocation import GeoLocationResolver
from shortener.json_utils import dumps
from shortener.models import ClickLog
from shortener.schemas import ClickEvent
from shortener.store import UrlMappingStore
from shortener.utils import utc_now

logger = logging.getLogger(__name__)

ErrorSink = Callable[[BaseException, ClickEvent], None]


def log_click_failure(exc: BaseException, event: ClickEvent) -> None:
    """Сток ошибок по умолчанию: пишет сбой и событие в лог"""
    logger.error(
        "Error logging click: %s",
        dumps({"event": event.model_dump(mode="json"), "error": repr(exc)}),
        exc_info=(type(exc), exc, exc.__traceback__)
    )


class ClickLogger:
    """Записывает клик: геолокация, строка ClickLog и счетчик ссылки"""

    def __init__(self, store: UrlMappingStore, geo_resolver: GeoLocationResolver):
        self.store = store
        self.geo_resolver = geo_resolver

    def record(
        self,
        mapping_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        clicked_at: Optional[datetime] = None,
    ) -> Optional[ClickLog]:
        mapping = self.store.find_by_id(mapping_id)
        if mapping is None:
            # Ссылку удалили между редиректом и записью клика
            logger.debug("Mapping %s is gone, skipping click", mapping_id)
            return None

        country, city = self.geo_resolver.resolve(ip_address)

        click = ClickLog(
            url_mapping_id=mapping_id,
            clicked_at=clicked_at or utc_now(),
            ip_address=ip_address[:45] if ip_address else None,
            user_agent=user_agent[:500] if user_agent else None,
            country=country,
            city=city
        )
        if not self.store.append_click_and_increment(mapping_id, click):
            logger.debug("Mapping %s deleted before click was stored", mapping_id)
            return None
        return click


class ClickDispatcher:
    """Ограниченный пул потоков для фоновой записи кликов.

    dispatch() никогда не блокирует и не бросает исключений: при
    переполнении или остановленном пуле событие отбрасывается с
    предупреждением. Сбои обработчика уходят в error_sink.
    """

    def __init__(
        self,
        click_logger: ClickLogger,
        max_workers: int = 4,
        max_pending: int = 1000,
        error_sink: ErrorSink = log_click_failure,
    ):
        self.click_logger = click_logger
        self.max_workers = max_workers
        self.max_pending = max_pending
        self.error_sink = error_sink
        self._executor: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(max_pending)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="click-logger"
            )
            logger.info("Click dispatcher started with %d workers", self.max_workers)

    def dispatch(self, event: ClickEvent) -> bool:
        executor = self._executor
        if executor is None:
            logger.warning("Click dispatcher is not running, dropping click for mapping %s", event.mapping_id)
            return False

        if not self._slots.acquire(blocking=False):
            logger.warning("Click queue is full (%d), dropping click for mapping %s",
                           self.max_pending, event.mapping_id)
            return False

        try:
            future = executor.submit(self._run, event)
        except RuntimeError:
            self._slots.release()
            logger.warning("Click dispatcher is shutting down, dropping click for mapping %s", event.mapping_id)
            return False

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._finished)
        return True

    def _run(self, event: ClickEvent) -> None:
        try:
            self.click_logger.record(
                event.mapping_id,
                ip_address=event.ip_address,
                user_agent=event.user_agent,
                clicked_at=event.clicked_at
            )
        except Exception as e:
            self.error_sink(e, event)

    def _finished(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        self._slots.release()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Ждет завершения всех отправленных событий; True если успели"""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.info("Click dispatcher stopped")
