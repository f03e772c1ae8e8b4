import uuid
from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID, ARRAY
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .base import Base

# text[] on Postgres; JSON lets the same model run on SQLite for local tests
TextArray = ARRAY(Text).with_variant(JSON(), "sqlite")


class Car(Base):
    __tablename__ = "cars"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(TextArray, nullable=False, default=list)
    images = Column(TextArray, nullable=True)       # legacy rows may only have cover_image
    cover_image = Column(Text, nullable=True)       # always images[0] for rows written by this app
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="cars")

    def to_record(self) -> dict:
        """Raw row as a plain dict; shape repair happens in services.normalize."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "images": self.images,
            "cover_image": self.cover_image,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
