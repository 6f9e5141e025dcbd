from sqlalchemy import JSON, Column, DateTime, Integer, MetaData, String, Table, UniqueConstraint

metadata = MetaData()

api_cache = Table(
    "api_cache",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("cache_class", String(32), nullable=False),
    Column("cache_key", String(255), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("cached_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    Column("source_version", String(64)),
    UniqueConstraint("cache_class", "cache_key", name="uq_api_cache_class_key"),
)
