from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_current_active_user, get_optional_user
from models.user import User
from repositories.learning import LearningRepository
from schemas.learning import ArticleCategoryRead, ArticleDetail, ArticleRead
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.learning_service import record_view, toggle_interaction

router = APIRouter()


async def _article_or_404(db: AsyncSession, slug: str):
    article = await LearningRepository(db).article_by_slug(slug)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


def _page(rows, total, page, per_page) -> PaginatedData:
    return PaginatedData.create([ArticleRead.model_validate(a) for a in rows], total, page, per_page)


@router.get("", response_model=StandardSuccessResponse)
async def list_articles(
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await LearningRepository(db).articles(
        page, per_page, search=search, category_slug=category, featured=featured
    )
    return {"success": True, "message": "Success", "data": _page(rows, total, page, per_page)}


@router.get("/categories", response_model=StandardSuccessResponse)
async def list_categories(db: AsyncSession = Depends(get_db)):
    data = []
    for category, count in await LearningRepository(db).article_categories():
        item = ArticleCategoryRead.model_validate(category).model_dump()
        item["articles_count"] = count
        data.append(item)
    return {"success": True, "message": "Success", "data": data}


@router.get("/categories/{slug}", response_model=StandardSuccessResponse)
async def articles_by_category(
    slug: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    repo = LearningRepository(db)
    category = await repo.article_category_by_slug(slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    rows, total = await repo.articles(page, per_page, category_slug=slug)
    return {
        "success": True,
        "message": "Success",
        "data": {
            "category": ArticleCategoryRead.model_validate(category),
            "articles": _page(rows, total, page, per_page),
        },
    }


@router.get("/bookmarks", response_model=StandardSuccessResponse)
async def bookmarked(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await LearningRepository(db).bookmarked_articles(current_user.id, page, per_page)
    return {"success": True, "message": "Success", "data": _page(rows, total, page, per_page)}


@router.get("/{slug}", response_model=StandardSuccessResponse)
async def show_article(
    slug: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    article = await record_view(db, await _article_or_404(db, slug))
    detail = ArticleDetail.model_validate(article)
    if current_user:
        interaction = await LearningRepository(db).interaction(current_user.id, article.id)
        if interaction:
            detail.user_liked = interaction.liked
            detail.user_bookmarked = interaction.bookmarked
    return {"success": True, "message": "Success", "data": detail}


@router.post("/{slug}/like", response_model=StandardSuccessResponse)
async def toggle_like(
    slug: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    liked, article = await toggle_interaction(db, current_user, await _article_or_404(db, slug), "liked")
    return {
        "success": True,
        "message": "Article liked" if liked else "Like removed",
        "data": {"liked": liked, "likes_count": article.likes_count},
    }


@router.post("/{slug}/bookmark", response_model=StandardSuccessResponse)
async def toggle_bookmark(
    slug: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    bookmarked, _ = await toggle_interaction(db, current_user, await _article_or_404(db, slug), "bookmarked")
    return {
        "success": True,
        "message": "Article bookmarked" if bookmarked else "Bookmark removed",
        "data": {"bookmarked": bookmarked},
    }
