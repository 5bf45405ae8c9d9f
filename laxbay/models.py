# laxbay/models.py
"""SQLAlchemy ORM models for persisted entities.

`Posting` is the Listing Store row, `PostingEmbedding` its one-to-one entry
in the Embedding Index, and `User` the account table behind session login.
"""
from sqlalchemy import Column, Integer, Text, Numeric, TIMESTAMP, ForeignKey, func, Index
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .config import EMBEDDING_DIM
from .db import Base
from .storage import ImageRef


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    username = Column(Text, nullable=False)
    password_hash = Column(Text, nullable=False)
    address = Column(Text)
    city = Column(Text)
    zip_code = Column(Text)
    role = Column(Text, nullable=False, server_default="user")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Posting(Base):
    __tablename__ = "postings"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(Text, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(Text, nullable=False)
    location = Column(Text, nullable=False)
    image = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    embedding = relationship(
        "PostingEmbedding",
        uselist=False,
        back_populates="posting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def image_url(self):
        return ImageRef(self.image).resolve() if self.image else None


class PostingEmbedding(Base):
    __tablename__ = "posting_embeddings"
    posting_id = Column(Integer, ForeignKey("postings.id", ondelete="CASCADE"), primary_key=True)
    embedding = Column(Vector(EMBEDDING_DIM), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    posting = relationship("Posting", back_populates="embedding")


Index("idx_users_email_lower", func.lower(User.email), unique=True)
Index("idx_users_username_lower", func.lower(User.username), unique=True)
Index("idx_postings_price", Posting.price)
Index("idx_postings_created_at", Posting.created_at)
