"""
SQLAlchemy models for the collections store.

Tables:
    - collections: one curated listing page per (site_host, slug)
    - site_settings: per-site switches read by the CMS runtime
    - push_log: append-only audit trail of publish attempts
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Collection(Base):
    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("site_host", "slug", name="uq_collections_site_slug"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_host = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False)

    title = Column(String(500))
    h1 = Column(String(500))
    meta_title = Column(String(500))
    meta_description = Column(Text)
    canonical = Column(String(1000))
    description_html = Column(Text)
    faq = Column(JSON, nullable=False, default=list)

    # assigned_product_ids is derived from assigned_skus by the resolver, never authored.
    assigned_skus = Column(JSON, nullable=False, default=list)
    assigned_product_ids = Column(JSON, nullable=False, default=list)

    sort_by = Column(String(32), nullable=False, default="popularity")
    paginate = Column(Integer, nullable=False, default=24)
    version = Column(Integer, nullable=False, default=1)
    status = Column(String(16), nullable=False, default=STATUS_DRAFT)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "site_host": self.site_host,
            "title": self.title,
            "h1": self.h1,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "canonical": self.canonical,
            "description_html": self.description_html,
            "faq": list(self.faq or []),
            "assigned_skus": list(self.assigned_skus or []),
            "assigned_product_ids": list(self.assigned_product_ids or []),
            "sort_by": self.sort_by,
            "paginate": self.paginate,
            "version": self.version,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class SiteSettings(Base):
    __tablename__ = "site_settings"

    site_host = Column(String(255), primary_key=True)
    collections_enabled = Column(Boolean, nullable=False, default=True)
    maintenance_message = Column(Text)
    collections_base = Column(String(255), nullable=False, default="collections")
    cms_url = Column(String(1000))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        # cms_url stays internal; the runtime only needs the switches
        return {
            "collections_enabled": bool(self.collections_enabled),
            "collections_base": self.collections_base,
            "maintenance_message": self.maintenance_message,
        }


class PushLogEntry(Base):
    __tablename__ = "push_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_host = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    version_pushed = Column(Integer, nullable=False)
    http_status = Column(Integer)
    response_body = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


def _iso(ts):
    return ts.isoformat() if ts else None
