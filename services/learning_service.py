from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from models.learning import Article, ArticleInteraction, QuizAttempt
from models.user import User
from repositories.learning import LearningRepository
from schemas.learning import QuizSubmission
from services.helpers import quiz_grade

logger = get_logger(__name__)

PASS_MARK = 70
MAX_QUIZ_QUESTIONS = 20


async def toggle_interaction(
    db: AsyncSession,
    user: User,
    article: Article,
    field: str,
) -> Tuple[bool, Article]:
    """Flip ``liked`` or ``bookmarked`` for the user; returns the new value."""
    repo = LearningRepository(db)
    interaction = await repo.interaction(user.id, article.id)
    if interaction is None:
        interaction = ArticleInteraction(user_id=user.id, article_id=article.id, liked=False, bookmarked=False)
        db.add(interaction)

    value = not getattr(interaction, field)
    setattr(interaction, field, value)
    if field == "liked":
        article.likes_count = max(0, (article.likes_count or 0) + (1 if value else -1))
    await db.commit()
    await db.refresh(article)
    return value, article


async def record_view(db: AsyncSession, item):
    """Bump ``views_count`` on an article or a video."""
    item.views_count = (item.views_count or 0) + 1
    await db.commit()
    await db.refresh(item)
    return item


async def grade_submission(db: AsyncSession, submission: QuizSubmission, user: Optional[User]) -> QuizAttempt:
    """Score the answers, update per-question counters and store the attempt."""
    repo = LearningRepository(db)
    questions = {q.id: q for q in await repo.questions_by_ids([a.question_id for a in submission.answers])}
    if not questions:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="No valid questions submitted")

    results = []
    correct = 0
    for answer in submission.answers:
        question = questions.get(answer.question_id)
        if question is None:
            continue
        is_correct = answer.answer_index == question.correct_answer_index
        question.times_answered = (question.times_answered or 0) + 1
        if is_correct:
            correct += 1
            question.times_correct = (question.times_correct or 0) + 1
        results.append(
            {
                "question_id": question.id,
                "selected": answer.answer_index,
                "correct_answer": question.correct_answer_index,
                "is_correct": is_correct,
                "explanation": question.explanation,
            }
        )

    total = len(results)
    score = round(correct / total * 100)
    category = None
    if submission.category != "all":
        category = await repo.road_sign_category_by_slug(submission.category)

    attempt = QuizAttempt(
        user_id=user.id if user else None,
        road_sign_category_id=category.id if category else None,
        category_slug=submission.category,
        total_questions=total,
        correct_answers=correct,
        score=score,
        time_taken=submission.time_taken,
        grade=quiz_grade(score),
        passed=score >= PASS_MARK,
        question_results=results,
    )
    db.add(attempt)
    await db.commit()
    await db.refresh(attempt)
    logger.info(
        "Quiz graded",
        attempt_id=attempt.id,
        user_id=attempt.user_id,
        score=score,
        grade=attempt.grade,
    )
    return attempt
