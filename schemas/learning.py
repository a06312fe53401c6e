from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from models.learning import QuizDifficulty


class ArticleCategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class ArticleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    read_time: int
    tags: Optional[List[str]] = None
    views_count: int
    likes_count: int
    is_featured: bool
    published_at: Optional[datetime] = None
    category: Optional[ArticleCategoryRead] = None


class ArticleDetail(ArticleRead):
    content: str
    key_points: Optional[List[Any]] = None
    user_liked: bool = False
    user_bookmarked: bool = False


class RoadSignCategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class RoadSignRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    meaning: str
    description: Optional[str] = None
    image: Optional[str] = None
    category: Optional[RoadSignCategoryRead] = None


class QuizQuestionPublic(BaseModel):
    """A question as sent to the client; the answer stays on the server."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    image: Optional[str] = None
    options: List[str]
    difficulty: QuizDifficulty


class QuizAnswer(BaseModel):
    question_id: int
    answer_index: int = Field(..., ge=0)


class QuizSubmission(BaseModel):
    category: str
    answers: List[QuizAnswer] = Field(..., min_length=1)
    time_taken: int = Field(..., ge=1, description="Seconds")


class QuizAttemptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    category_slug: Optional[str] = None
    total_questions: int
    correct_answers: int
    score: int
    time_taken: int
    grade: Optional[str] = None
    passed: bool
    created_at: Optional[datetime] = None


class VideoCategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class VideoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    description: Optional[str] = None
    youtube_id: str
    youtube_url: str
    thumbnail_url: Optional[str] = None
    channel_name: Optional[str] = None
    duration_seconds: Optional[int] = None
    duration_formatted: Optional[str] = None
    views_count: int
    is_featured: bool
    category: Optional[VideoCategoryRead] = None
