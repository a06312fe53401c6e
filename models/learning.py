"""
Learning content: articles, road signs, quizzes and videos.
"""

import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON,
    ForeignKey, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy import event
from slugify import slugify
from enum import Enum as PyEnum

from core.database import Base


class QuizDifficulty(str, PyEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ArticleCategory(Base):
    __tablename__ = "article_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    article_category_id = Column(Integer, ForeignKey("article_categories.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(280), unique=True, nullable=False)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    featured_image = Column(String(500), nullable=True)
    read_time = Column(Integer, nullable=False, default=5)  # minutes
    tags = Column(JSON, nullable=True)
    key_points = Column(JSON, nullable=True)
    views_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_published = Column(Boolean, nullable=False, default=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    category = relationship("ArticleCategory", lazy="selectin")


class ArticleInteraction(Base):
    __tablename__ = "article_interactions"
    __table_args__ = (UniqueConstraint("user_id", "article_id", name="uq_article_interactions_user_article"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False)
    liked = Column(Boolean, nullable=False, default=False)
    bookmarked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RoadSignCategory(Base):
    __tablename__ = "road_sign_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True)
    icon = Column(String(100), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class RoadSign(Base):
    __tablename__ = "road_signs"

    id = Column(Integer, primary_key=True, index=True)
    road_sign_category_id = Column(Integer, ForeignKey("road_sign_categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(150), nullable=False)
    slug = Column(String(180), unique=True, nullable=False)
    meaning = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("RoadSignCategory", lazy="selectin")


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    road_sign_category_id = Column(Integer, ForeignKey("road_sign_categories.id", ondelete="SET NULL"), nullable=True)
    road_sign_id = Column(Integer, ForeignKey("road_signs.id", ondelete="SET NULL"), nullable=True)
    question = Column(Text, nullable=False)
    image = Column(String(500), nullable=True)
    options = Column(JSON, nullable=False)
    correct_answer_index = Column(Integer, nullable=False)
    explanation = Column(Text, nullable=True)
    difficulty = Column(SQLEnum(QuizDifficulty), nullable=False, default=QuizDifficulty.MEDIUM)
    is_active = Column(Boolean, nullable=False, default=True)
    times_answered = Column(Integer, nullable=False, default=0)
    times_correct = Column(Integer, nullable=False, default=0)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    road_sign_category_id = Column(Integer, ForeignKey("road_sign_categories.id", ondelete="SET NULL"), nullable=True)
    category_slug = Column(String(120), nullable=True)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    score = Column(Integer, nullable=False)  # percentage
    time_taken = Column(Integer, nullable=False)  # seconds
    grade = Column(String(2), nullable=True)
    passed = Column(Boolean, nullable=False, default=False)
    question_results = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VideoCategory(Base):
    __tablename__ = "video_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    color = Column(String(20), nullable=False, default="#3B82F6")
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class VideoResource(Base):
    __tablename__ = "video_resources"

    id = Column(Integer, primary_key=True, index=True)
    video_category_id = Column(Integer, ForeignKey("video_categories.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(280), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    youtube_id = Column(String(50), nullable=False)
    youtube_url = Column(String(500), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    channel_name = Column(String(255), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    views_count = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False, index=True)
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    category = relationship("VideoCategory", lazy="selectin")

    @property
    def duration_formatted(self):
        if not self.duration_seconds:
            return None
        minutes, seconds = divmod(self.duration_seconds, 60)
        return f"{minutes}:{seconds:02d}"


@event.listens_for(ArticleCategory, "before_insert")
@event.listens_for(RoadSignCategory, "before_insert")
@event.listens_for(RoadSign, "before_insert")
@event.listens_for(VideoCategory, "before_insert")
def before_insert_named(mapper, connection, target):
    if target.name and not target.slug:
        target.slug = slugify(target.name)


@event.listens_for(Article, "before_insert")
@event.listens_for(VideoResource, "before_insert")
def before_insert_titled(mapper, connection, target):
    if target.title and not target.slug:
        target.slug = slugify(target.title)
