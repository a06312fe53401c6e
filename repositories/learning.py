"""
Learning Repository

Read access to articles, road signs, quiz questions and videos, plus the
per-user article interactions and quiz attempts.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.learning import (
    Article,
    ArticleCategory,
    ArticleInteraction,
    QuizAttempt,
    QuizQuestion,
    RoadSign,
    RoadSignCategory,
    VideoCategory,
    VideoResource,
)
from repositories.base import BaseRepository
from schemas.learning import QuizSubmission

logger = logging.getLogger(__name__)


def _published_articles():
    return select(Article).where(
        Article.is_published == True,  # noqa: E712
        Article.deleted_at.is_(None),
    )


class LearningRepository(BaseRepository[Article, QuizSubmission, QuizSubmission]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Article, db_session)
        self.db_session = db_session

    # Articles

    async def articles(
        self,
        page: int,
        per_page: int,
        search: Optional[str] = None,
        category_slug: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> Tuple[List[Article], int]:
        query = _published_articles()
        if category_slug:
            query = query.join(ArticleCategory, ArticleCategory.id == Article.article_category_id).where(
                ArticleCategory.slug == category_slug
            )
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(Article.title.ilike(term), Article.excerpt.ilike(term)))
        if featured is not None:
            query = query.where(Article.is_featured == featured)
        query = query.order_by(Article.published_at.desc().nulls_last(), Article.id.desc())
        return await self.paginate(query, page, per_page)

    async def article_categories(self) -> List[Tuple[ArticleCategory, int]]:
        counts = (
            select(Article.article_category_id, func.count(Article.id).label("articles_count"))
            .where(Article.is_published == True, Article.deleted_at.is_(None))  # noqa: E712
            .group_by(Article.article_category_id)
            .subquery()
        )
        result = await self.db_session.execute(
            select(ArticleCategory, func.coalesce(counts.c.articles_count, 0))
            .outerjoin(counts, counts.c.article_category_id == ArticleCategory.id)
            .where(ArticleCategory.is_active == True)  # noqa: E712
            .order_by(ArticleCategory.sort_order, ArticleCategory.name)
        )
        return [(category, count) for category, count in result.all()]

    async def article_category_by_slug(self, slug: str) -> Optional[ArticleCategory]:
        result = await self.db_session.execute(
            select(ArticleCategory).where(ArticleCategory.slug == slug, ArticleCategory.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def article_by_slug(self, slug: str) -> Optional[Article]:
        result = await self.db_session.execute(_published_articles().where(Article.slug == slug))
        return result.scalar_one_or_none()

    async def interaction(self, user_id: int, article_id: int) -> Optional[ArticleInteraction]:
        result = await self.db_session.execute(
            select(ArticleInteraction).where(
                ArticleInteraction.user_id == user_id,
                ArticleInteraction.article_id == article_id,
            )
        )
        return result.scalar_one_or_none()

    async def bookmarked_articles(self, user_id: int, page: int, per_page: int) -> Tuple[List[Article], int]:
        query = (
            _published_articles()
            .join(ArticleInteraction, ArticleInteraction.article_id == Article.id)
            .where(ArticleInteraction.user_id == user_id, ArticleInteraction.bookmarked == True)  # noqa: E712
            .order_by(ArticleInteraction.id.desc())
        )
        return await self.paginate(query, page, per_page)

    # Road signs

    async def road_signs(
        self,
        search: Optional[str] = None,
        category_slug: Optional[str] = None,
    ) -> List[RoadSign]:
        query = select(RoadSign).where(RoadSign.is_active == True)  # noqa: E712
        if category_slug:
            query = query.join(RoadSignCategory, RoadSignCategory.id == RoadSign.road_sign_category_id).where(
                RoadSignCategory.slug == category_slug
            )
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(RoadSign.name.ilike(term), RoadSign.meaning.ilike(term)))
        result = await self.db_session.execute(query.order_by(RoadSign.sort_order, RoadSign.name))
        return list(result.scalars().all())

    async def road_sign_categories(self) -> List[Tuple[RoadSignCategory, int]]:
        counts = (
            select(RoadSign.road_sign_category_id, func.count(RoadSign.id).label("signs_count"))
            .where(RoadSign.is_active == True)  # noqa: E712
            .group_by(RoadSign.road_sign_category_id)
            .subquery()
        )
        result = await self.db_session.execute(
            select(RoadSignCategory, func.coalesce(counts.c.signs_count, 0))
            .outerjoin(counts, counts.c.road_sign_category_id == RoadSignCategory.id)
            .where(RoadSignCategory.is_active == True)  # noqa: E712
            .order_by(RoadSignCategory.sort_order, RoadSignCategory.name)
        )
        return [(category, count) for category, count in result.all()]

    async def road_sign_category_by_slug(self, slug: str) -> Optional[RoadSignCategory]:
        result = await self.db_session.execute(
            select(RoadSignCategory).where(RoadSignCategory.slug == slug, RoadSignCategory.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def road_sign(self, sign_id: int) -> Optional[RoadSign]:
        result = await self.db_session.execute(
            select(RoadSign).where(RoadSign.id == sign_id, RoadSign.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    # Quiz

    async def question_counts_by_category(self) -> List[Tuple[RoadSignCategory, int]]:
        result = await self.db_session.execute(
            select(RoadSignCategory, func.count(QuizQuestion.id))
            .join(QuizQuestion, QuizQuestion.road_sign_category_id == RoadSignCategory.id)
            .where(RoadSignCategory.is_active == True, QuizQuestion.is_active == True)  # noqa: E712
            .group_by(RoadSignCategory.id)
            .order_by(RoadSignCategory.sort_order, RoadSignCategory.name)
        )
        return [(category, count) for category, count in result.all()]

    async def count_active_questions(self) -> int:
        result = await self.db_session.execute(
            select(func.count(QuizQuestion.id)).where(QuizQuestion.is_active == True)  # noqa: E712
        )
        return result.scalar_one()

    async def random_questions(self, category_id: Optional[int], limit: int) -> List[QuizQuestion]:
        query = select(QuizQuestion).where(QuizQuestion.is_active == True)  # noqa: E712
        if category_id is not None:
            query = query.where(QuizQuestion.road_sign_category_id == category_id)
        result = await self.db_session.execute(query.order_by(func.random()).limit(limit))
        return list(result.scalars().all())

    async def questions_by_ids(self, ids: Sequence[int]) -> List[QuizQuestion]:
        result = await self.db_session.execute(
            select(QuizQuestion).where(QuizQuestion.id.in_(list(ids)), QuizQuestion.is_active == True)  # noqa: E712
        )
        return list(result.scalars().all())

    async def quiz_history(self, user_id: int, page: int, per_page: int) -> Tuple[List[QuizAttempt], int]:
        query = (
            select(QuizAttempt)
            .where(QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
        )
        return await self.paginate(query, page, per_page)

    # Videos

    async def video_categories(self) -> List[Tuple[VideoCategory, int]]:
        counts = (
            select(VideoResource.video_category_id, func.count(VideoResource.id).label("videos_count"))
            .where(VideoResource.is_published == True)  # noqa: E712
            .group_by(VideoResource.video_category_id)
            .subquery()
        )
        result = await self.db_session.execute(
            select(VideoCategory, func.coalesce(counts.c.videos_count, 0))
            .outerjoin(counts, counts.c.video_category_id == VideoCategory.id)
            .where(VideoCategory.is_active == True)  # noqa: E712
            .order_by(VideoCategory.sort_order, VideoCategory.name)
        )
        return [(category, count) for category, count in result.all()]

    async def videos(
        self,
        page: int,
        per_page: int,
        category_slug: Optional[str] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[VideoResource], int]:
        query = select(VideoResource).where(VideoResource.is_published == True)  # noqa: E712
        if category_slug:
            query = query.join(VideoCategory, VideoCategory.id == VideoResource.video_category_id).where(
                VideoCategory.slug == category_slug
            )
        if featured is not None:
            query = query.where(VideoResource.is_featured == featured)
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(VideoResource.title.ilike(term), VideoResource.description.ilike(term)))
        query = query.order_by(VideoResource.sort_order, VideoResource.id.desc())
        return await self.paginate(query, page, per_page)

    async def video(self, video_id: int) -> Optional[VideoResource]:
        result = await self.db_session.execute(
            select(VideoResource).where(VideoResource.id == video_id, VideoResource.is_published == True)  # noqa: E712
        )
        return result.scalar_one_or_none()
