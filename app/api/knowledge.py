import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationContext, Permission, require_permission
from app.core.exceptions import BusinessLogicError, business_exception_to_http
from app.db.session import get_db
from app.schemas.common import COMMON_RESPONSES, ErrorResponse
from app.schemas.knowledge import ArticleCreateRequest, ArticleResponse, ArticleUpdateRequest
from app.services.knowledge import KnowledgeService

logger = logging.getLogger(__name__)

# Public reading, no authentication
public_router = APIRouter(prefix="/api/information-articles", tags=["knowledge"])
# Staff maintenance
router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Article not found"}}
manage_knowledge = require_permission(Permission.MANAGE_KNOWLEDGE)


@public_router.get("", response_model=List[ArticleResponse], summary="List public articles")
async def list_public_articles(
    category: Optional[str] = None,
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_db),
) -> List[ArticleResponse]:
    articles = await KnowledgeService().list_public(session, category=category, search=search)
    return [ArticleResponse.model_validate(a) for a in articles]


@public_router.get("/{article_id}", response_model=ArticleResponse, responses=NOT_FOUND, summary="Read a public article")
async def read_public_article(article_id: int, session: AsyncSession = Depends(get_db)) -> ArticleResponse:
    try:
        article = await KnowledgeService().read_public(session, article_id)
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return ArticleResponse.model_validate(article)


@router.get("", response_model=List[ArticleResponse], responses=COMMON_RESPONSES, summary="List all articles")
async def list_articles(
    category: Optional[str] = None,
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_knowledge),
) -> List[ArticleResponse]:
    articles = await KnowledgeService().list_all(session, category=category, search=search)
    return [ArticleResponse.model_validate(a) for a in articles]


@router.get("/{article_id}", response_model=ArticleResponse, responses={**COMMON_RESPONSES, **NOT_FOUND}, summary="Get an article")
async def get_article(
    article_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_knowledge),
) -> ArticleResponse:
    try:
        article = await KnowledgeService().get(session, article_id)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return ArticleResponse.model_validate(article)


@router.post(
    "",
    response_model=ArticleResponse,
    status_code=status.HTTP_201_CREATED,
    responses=COMMON_RESPONSES,
    summary="Create an article",
)
async def create_article(
    payload: ArticleCreateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_knowledge),
) -> ArticleResponse:
    try:
        article = await KnowledgeService().create(session, auth_context.user_id, payload.model_dump())
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return ArticleResponse.model_validate(article)


@router.put("/{article_id}", response_model=ArticleResponse, responses={**COMMON_RESPONSES, **NOT_FOUND}, summary="Update an article")
async def update_article(
    article_id: int,
    payload: ArticleUpdateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_knowledge),
) -> ArticleResponse:
    try:
        article = await KnowledgeService().update(session, article_id, payload.model_dump(exclude_unset=True))
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return ArticleResponse.model_validate(article)


@router.delete(
    "/{article_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**COMMON_RESPONSES, **NOT_FOUND},
    summary="Delete an article",
)
async def delete_article(
    article_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_knowledge),
) -> None:
    try:
        await KnowledgeService().delete(session, article_id)
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
