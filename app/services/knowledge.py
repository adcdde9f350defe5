import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.exceptions import ErrorHandler, NotFoundError, ValidationError
from app.db.models import InformationArticle
from app.repositories.article import ArticleRepository

logger = logging.getLogger(__name__)

ARTICLE_FIELDS = ("title", "content", "category", "is_public")


class KnowledgeService:
    """Information articles: public reading and staff maintenance."""

    def __init__(self) -> None:
        self.repo = ArticleRepository()

    async def list_public(self, session: AsyncSession, category: Optional[str] = None, search: Optional[str] = None) -> List[InformationArticle]:
        return await self.repo.list_articles(session, public_only=True, category=category, search=search)

    async def read_public(self, session: AsyncSession, article_id: int) -> InformationArticle:
        """Return a public article and count the view."""
        article = await self.repo.get_by_id(session, article_id)
        if not article or not article.is_public:
            raise NotFoundError("Article not found", {"article_id": article_id})
        article.views_count = (article.views_count or 0) + 1
        await session.flush()
        return article

    async def list_all(self, session: AsyncSession, category: Optional[str] = None, search: Optional[str] = None) -> List[InformationArticle]:
        return await self.repo.list_articles(session, public_only=False, category=category, search=search)

    async def get(self, session: AsyncSession, article_id: int) -> InformationArticle:
        article = await self.repo.get_by_id(session, article_id)
        if not article:
            raise NotFoundError("Article not found", {"article_id": article_id})
        return article

    async def create(self, session: AsyncSession, author_id: int, data: Dict[str, Any]) -> InformationArticle:
        ErrorHandler.validate_required_fields(data, ["title", "content"])
        article = await self.repo.create(
            session,
            title=data["title"].strip(),
            content=data["content"].strip(),
            category=data.get("category"),
            is_public=True if data.get("is_public") is None else bool(data["is_public"]),
            created_by_id=author_id,
        )
        logger.info("Article %s created by %s", article.id, author_id)
        return article

    async def update(self, session: AsyncSession, article_id: int, data: Dict[str, Any]) -> InformationArticle:
        article = await self.get(session, article_id)
        fields = {k: v for k, v in data.items() if k in ARTICLE_FIELDS and v is not None}
        if not fields:
            raise ValidationError("No fields to update", {"allowed": list(ARTICLE_FIELDS)})
        for key in ("title", "content"):
            if key in fields:
                if not str(fields[key]).strip():
                    raise ValidationError(f"{key} cannot be empty", {"field": key})
                fields[key] = fields[key].strip()
        for key, value in fields.items():
            setattr(article, key, value)
        await session.flush()
        return article

    async def delete(self, session: AsyncSession, article_id: int) -> None:
        article = await self.get(session, article_id)
        await self.repo.delete(session, article)
        logger.info("Article %s deleted", article_id)
