# collections_sync/services/store.py
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import StoreError
from ..models import Base, Collection, PushLogEntry, SiteSettings, utcnow
from ..utils.logger import error


def make_engine(url: str):
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        # one shared connection, otherwise every session sees a fresh empty database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)


class CollectionStore:
    """
    Read/write access to collections, site settings and the push log.

    Each call runs in its own short session; returned rows are detached snapshots.
    Any backend failure surfaces as StoreError carrying the driver message.
    """

    def __init__(self, engine):
        self.engine = engine
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "CollectionStore":
        return cls(make_engine(url))

    def create_all(self):
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._factory()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            error(f"[store] integrity error: {e.orig}")
            raise StoreError(str(e.orig)) from e
        except SQLAlchemyError as e:
            session.rollback()
            error(f"[store] {e}")
            raise StoreError(str(e)) from e
        finally:
            session.close()

    # ---------------- collections ----------------

    def get_collection(self, site_host: str, slug: str) -> Optional[Collection]:
        with self._session() as s:
            return s.execute(
                select(Collection).where(Collection.site_host == site_host, Collection.slug == slug)
            ).scalar_one_or_none()

    def insert_collection(self, values: dict) -> Collection:
        with self._session() as s:
            col = Collection(**values)
            s.add(col)
            s.flush()
            return col

    def update_collection(self, site_host: str, slug: str, **values) -> Optional[Collection]:
        """Apply values and refresh updated_at. Returns None when the row vanished."""
        with self._session() as s:
            col = s.execute(
                select(Collection).where(Collection.site_host == site_host, Collection.slug == slug)
            ).scalar_one_or_none()
            if col is None:
                return None
            for k, v in values.items():
                setattr(col, k, v)
            col.updated_at = utcnow()
            s.flush()
            return col

    # ---------------- site settings ----------------

    def get_settings(self, site_host: str) -> Optional[SiteSettings]:
        with self._session() as s:
            return s.get(SiteSettings, site_host)

    def upsert_settings(self, site_host: str, **values) -> SiteSettings:
        with self._session() as s:
            st = s.get(SiteSettings, site_host)
            if st is None:
                st = SiteSettings(site_host=site_host)
                s.add(st)
            for k, v in values.items():
                setattr(st, k, v)
            st.updated_at = utcnow()
            s.flush()
            return st

    # ---------------- push log ----------------

    def append_push_log(self, *, site_host: str, slug: str, version_pushed: int,
                        http_status: Optional[int], response_body) -> None:
        with self._session() as s:
            s.add(PushLogEntry(
                site_host=site_host,
                slug=slug,
                version_pushed=version_pushed,
                http_status=http_status,
                response_body=response_body,
            ))

    def push_log_for(self, site_host: str, slug: str) -> List[PushLogEntry]:
        with self._session() as s:
            return list(s.execute(
                select(PushLogEntry)
                .where(PushLogEntry.site_host == site_host, PushLogEntry.slug == slug)
                .order_by(PushLogEntry.id)
            ).scalars())
