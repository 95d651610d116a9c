"""Document model backing the hosted collection store."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from formflow.database import Base


class Document(Base):
    """One JSON record inside a named collection."""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),)

    # Autoincrement key doubles as insertion order within a collection
    pk = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False, index=True)
    doc_id = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
