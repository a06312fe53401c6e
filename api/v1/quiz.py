"""
Road-sign quiz: categories, random question sets, grading and history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_current_active_user, get_optional_user
from models.user import User
from repositories.learning import LearningRepository
from schemas.learning import QuizAttemptRead, QuizQuestionPublic, QuizSubmission
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.learning_service import MAX_QUIZ_QUESTIONS, grade_submission

router = APIRouter()


@router.get("/categories", response_model=StandardSuccessResponse)
async def quiz_categories(db: AsyncSession = Depends(get_db)):
    repo = LearningRepository(db)
    data = [
        {
            "slug": "all",
            "name": "All Road Signs",
            "questions_count": await repo.count_active_questions(),
        }
    ]
    for category, count in await repo.question_counts_by_category():
        data.append({"slug": category.slug, "name": category.name, "questions_count": count})
    return {"success": True, "message": "Success", "data": data}


@router.get("/{category}/questions", response_model=StandardSuccessResponse)
async def quiz_questions(
    category: str,
    limit: int = Query(10, ge=1, le=MAX_QUIZ_QUESTIONS),
    db: AsyncSession = Depends(get_db),
):
    repo = LearningRepository(db)
    category_id = None
    if category != "all":
        found = await repo.road_sign_category_by_slug(category)
        if not found:
            raise HTTPException(status_code=404, detail="Category not found")
        category_id = found.id

    questions = await repo.random_questions(category_id, limit)
    return {
        "success": True,
        "message": "Success",
        "data": [QuizQuestionPublic.model_validate(q) for q in questions],
    }


@router.post("/submit", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def submit_quiz(
    body: QuizSubmission,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    attempt = await grade_submission(db, body, current_user)
    data = QuizAttemptRead.model_validate(attempt).model_dump()
    data["results"] = attempt.question_results
    return {"success": True, "message": "Quiz submitted", "data": data}


@router.get("/history", response_model=StandardSuccessResponse)
async def quiz_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await LearningRepository(db).quiz_history(current_user.id, page, per_page)
    items = [QuizAttemptRead.model_validate(a) for a in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}
