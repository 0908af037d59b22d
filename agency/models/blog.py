from datetime import datetime

from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


class BlogPost(SQLModel, table=True):
    __tablename__ = "blog_posts"
    id: int | None = Field(default=None, primary_key=True)
    slug: str = Field(unique=True, index=True, max_length=200)
    title: str = Field(max_length=300)
    excerpt: str | None = None
    content: str | None = None
    status: str = Field(default="draft", max_length=16)  # draft | published
    is_public: bool = True
    noindex: bool = False
    publish_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
