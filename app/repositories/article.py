from typing import Any, List, Optional
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import InformationArticle


class ArticleRepository:
    """Repository for `InformationArticle` rows."""

    async def get_by_id(self, session: AsyncSession, article_id: int) -> Optional[InformationArticle]:
        return await session.get(InformationArticle, article_id)

    async def list_articles(
        self,
        session: AsyncSession,
        public_only: bool = True,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[InformationArticle]:
        stmt = select(InformationArticle)
        if public_only:
            stmt = stmt.where(InformationArticle.is_public.is_(True))
        if category:
            stmt = stmt.where(InformationArticle.category == category)
        if search:
            like = f"%{search.strip()}%"
            stmt = stmt.where(or_(InformationArticle.title.ilike(like), InformationArticle.content.ilike(like)))
        stmt = stmt.order_by(InformationArticle.created_at.desc(), InformationArticle.id.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, session: AsyncSession, **fields: Any) -> InformationArticle:
        entity = InformationArticle(**fields)
        session.add(entity)
        await session.flush()
        return entity

    async def delete(self, session: AsyncSession, entity: InformationArticle) -> None:
        await session.delete(entity)
        await session.flush()
