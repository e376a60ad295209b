"""SQLAlchemy database models for the news crawler."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

Base: Any = declarative_base()


class NewsItem(Base):
    """One scraped article, unique by URL."""

    __tablename__ = "news_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String, nullable=False, unique=True, index=True)
    source = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    published_at = Column(DateTime, nullable=False, index=True)
    fetched_at = Column(DateTime, nullable=False)
    category = Column(String)
    author = Column(String)
    content_type = Column(String)
    full_content = Column(Text)
    preview_content = Column(Text)
    created_at = Column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = Column(DateTime, onupdate=datetime.utcnow)


def create_database_engine(database_url: str = "sqlite:///data/news.db"):
    """Create SQLAlchemy engine with proper configuration."""
    if database_url.startswith("sqlite"):
        # SQLite-specific optimizations
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
    else:
        engine = create_engine(
            database_url,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_pre_ping=True,
            echo=False,
        )

    return engine


def create_tables(engine):
    """Create all tables in the database."""
    Base.metadata.create_all(engine)


def get_session(engine):
    """Get database session."""
    Session = sessionmaker(bind=engine)
    return Session()
