"""SQLAlchemy ORM models for changelog-sync.

Tables:
- CONTENTCHANGELOG: verbatim backups of applied changelog files, with the
  tag to roll back to when a file has to be undone

The engine's own DATABASECHANGELOG table is not modelled here; it is read
through plain SQL in src.changelog_sync.history.
"""

from sqlalchemy import BigInteger, Column, Integer, String, Text

from src.db.base import Base


class ContentChangelog(Base):
    """Backup of one changelog file as applied (no uniqueness on filename)."""

    __tablename__ = "CONTENTCHANGELOG"

    id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    filename = Column(String(255))
    date = Column(String(32))
    content = Column(Text)
    tag = Column(String(255))

    def __repr__(self) -> str:
        return f"ContentChangelog(id={self.id}, filename={self.filename!r}, tag={self.tag!r})"
