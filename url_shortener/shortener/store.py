from typing import Callable, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shortener.exceptions import TransientStoreConflict
from shortener.models import UrlMapping, ClickLog


class UrlMappingStore:
    """Хранилище ссылок и кликов поверх SQLAlchemy.

    Каждая операция открывает собственную сессию, поэтому экземпляр можно
    разделять между запросами и фоновыми потоками. Возвращаемые объекты
    отсоединены от сессии (expire_on_commit=False).
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def insert(self, mapping: UrlMapping) -> UrlMapping:
        """Сохраняет ссылку; нарушение уникальности кода - TransientStoreConflict"""
        with self.session_factory() as db:
            db.add(mapping)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise TransientStoreConflict(mapping.short_code) from e
            db.refresh(mapping)
            return mapping

    def exists_by_code(self, short_code: str) -> bool:
        with self.session_factory() as db:
            return db.query(UrlMapping.id).filter(UrlMapping.short_code == short_code).first() is not None

    def find_by_code(self, short_code: str) -> Optional[UrlMapping]:
        with self.session_factory() as db:
            return db.query(UrlMapping).filter(UrlMapping.short_code == short_code).first()

    def find_by_id(self, mapping_id: int) -> Optional[UrlMapping]:
        with self.session_factory() as db:
            return db.get(UrlMapping, mapping_id)

    def find_by_url_and_owner(self, original_url: str, owner_id: Optional[int]) -> Optional[UrlMapping]:
        with self.session_factory() as db:
            owner_filter = UrlMapping.owner_id.is_(None) if owner_id is None else UrlMapping.owner_id == owner_id
            return db.query(UrlMapping).filter(
                UrlMapping.original_url == original_url,
                owner_filter
            ).order_by(UrlMapping.id).first()

    def find_by_owner(self, owner_id: int) -> List[UrlMapping]:
        with self.session_factory() as db:
            return db.query(UrlMapping).filter(
                UrlMapping.owner_id == owner_id
            ).order_by(UrlMapping.created_at.desc(), UrlMapping.id.desc()).all()

    def delete(self, mapping: UrlMapping) -> bool:
        """Удаляет ссылку вместе с ее кликами в одной транзакции"""
        with self.session_factory() as db:
            db.query(ClickLog).filter(
                ClickLog.url_mapping_id == mapping.id
            ).delete(synchronize_session=False)
            deleted = db.query(UrlMapping).filter(
                UrlMapping.id == mapping.id
            ).delete(synchronize_session=False)
            db.commit()
            return deleted > 0

    def append_click_and_increment(self, mapping_id: int, click: ClickLog) -> bool:
        """Атомарно добавляет клик и увеличивает счетчик ссылки.

        Счетчик обновляется выражением click_count + 1 на стороне БД, а
        last_accessed_at сохраняет более позднюю из меток. Возвращает False,
        если ссылка уже удалена.
        """
        with self.session_factory() as db:
            updated = db.query(UrlMapping).filter(UrlMapping.id == mapping_id).update(
                {
                    UrlMapping.click_count: UrlMapping.click_count + 1,
                    UrlMapping.last_accessed_at: case(
                        (UrlMapping.last_accessed_at.is_(None), click.clicked_at),
                        (UrlMapping.last_accessed_at < click.clicked_at, click.clicked_at),
                        else_=UrlMapping.last_accessed_at,
                    ),
                },
                synchronize_session=False
            )
            if not updated:
                db.rollback()
                return False

            click.url_mapping_id = mapping_id
            db.add(click)
            db.commit()
            return True

    def recent_clicks(self, mapping_id: int, limit: int) -> List[ClickLog]:
        with self.session_factory() as db:
            return db.query(ClickLog).filter(
                ClickLog.url_mapping_id == mapping_id
            ).order_by(ClickLog.clicked_at.desc(), ClickLog.id.desc()).limit(limit).all()

    def aggregate_country_counts(self, mapping_id: int, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Число кликов по странам, по убыванию; при равенстве - страна, встреченная раньше"""
        clicks = func.count(ClickLog.id)
        with self.session_factory() as db:
            query = db.query(ClickLog.country, clicks).filter(
                ClickLog.url_mapping_id == mapping_id,
                ClickLog.country.isnot(None)
            ).group_by(ClickLog.country).order_by(clicks.desc(), func.min(ClickLog.id))
            if limit is not None:
                query = query.limit(limit)
            return [(country, count) for country, count in query.all()]
