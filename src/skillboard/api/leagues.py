# src/skillboard/api/leagues.py

"""API endpoints for leagues, joining, submissions and live standings."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from skillboard.db.models import League, utcnow
from skillboard.db.session import get_db
from skillboard.schemas import league as league_schema
from skillboard.schemas.common import LeagueStatus, SkillLevel
from skillboard.schemas.leaderboard import LeagueLeaderboardEntry, SubmissionResult
from skillboard.schemas.league import SubmissionRead
from skillboard.schemas.pagination import LeagueSortField, PaginatedResponse, SortOrder
from skillboard.services import league_service

router = APIRouter(prefix="/leagues", tags=["Leagues"])

# Entries returned with a submission response
SUBMISSION_LEADERBOARD_SIZE = 10


@router.post(
    "/",
    response_model=league_schema.LeagueRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_league(
    league_in: league_schema.LeagueCreate, db: AsyncSession = Depends(get_db)
) -> League:
    """
    Create a new league.

    - **scoring_method**: accuracy_then_time, time_then_accuracy or points_only
    - **max_submissions**: Submission cap per participant
    - **subject**: Optional subject tag used by subject leaderboards
    """
    return await league_service.create_league(db, league_in)


@router.get("/", response_model=PaginatedResponse[league_schema.LeagueRead])
async def read_leagues(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(10, ge=1, le=100, description="Max records to return"),
    status_filter: LeagueStatus | None = Query(
        None, alias="status", description="Filter by lifecycle status"
    ),
    subject: str | None = Query(None, description="Filter by subject tag"),
    skill_level: SkillLevel | None = Query(None, description="Filter by skill level"),
    sort_by: LeagueSortField = Query(
        LeagueSortField.START_AT, description="Sort field"
    ),
    sort_order: SortOrder = Query(SortOrder.ASC, description="Sort direction"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[league_schema.LeagueRead]:
    """
    Retrieve a paginated list of public leagues.

    - **status**: upcoming, active, completed or cancelled (derived from dates)
    - **subject**: Subject tag
    - **skill_level**: beginner, intermediate, advanced or expert
    """
    base_query = select(League).where(League.is_public.is_(True))
    if status_filter is not None:
        base_query = base_query.where(
            league_service.status_clause(status_filter, utcnow())
        )
    if subject is not None:
        base_query = base_query.where(League.subject == subject.lower())
    if skill_level is not None:
        base_query = base_query.where(League.skill_level == skill_level.value)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    sort_column = getattr(League, sort_by.value)
    if sort_order == SortOrder.DESC:
        sort_column = sort_column.desc()

    query = (
        base_query.order_by(sort_column, League.id)
        .offset(skip)
        .limit(limit)
        .options(selectinload(League.participants))
    )
    result = await db.execute(query)
    items = [
        league_schema.LeagueRead.model_validate(league)
        for league in result.scalars().unique().all()
    ]

    return PaginatedResponse[league_schema.LeagueRead](
        items=items,
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.get("/{league_id}", response_model=league_schema.LeagueRead)
async def read_league(league_id: int, db: AsyncSession = Depends(get_db)) -> League:
    """Retrieve a league with its status and roster counters."""
    return await league_service.load_league(db, league_id)


@router.post("/{league_id}/cancel", response_model=league_schema.LeagueRead)
async def cancel_league(league_id: int, db: AsyncSession = Depends(get_db)) -> League:
    """
    Cancel an upcoming or active league.

    Raises:
        409 Conflict: If the league is already cancelled or completed.
    """
    return await league_service.cancel_league(db, league_id)


@router.post(
    "/{league_id}/join",
    response_model=league_schema.ParticipantRead,
    status_code=status.HTTP_201_CREATED,
)
async def join_league(
    league_id: int,
    join_in: league_schema.JoinRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Join a league.

    Raises:
        404 Not Found: Unknown league or user.
        409 Conflict: Already joined, league full, or league not joinable.
    """
    return await league_service.join_league(db, league_id, join_in.user_id)


@router.post(
    "/{league_id}/submissions",
    response_model=SubmissionResult,
    status_code=status.HTTP_201_CREATED,
)
async def submit_score(
    league_id: int,
    score_in: league_schema.ScoreSubmit,
    db: AsyncSession = Depends(get_db),
) -> SubmissionResult:
    """
    Submit a score to a league.

    - **accuracy**: 0-100
    - **time_seconds**: Elapsed time, lower is better
    - **points**: Points earned
    - **game_data**: Optional details about the game played

    Returns the stored submission, the caller's live rank and the top 10.

    Raises:
        409 Conflict: Submission limit reached or league not active.
    """
    submission, league = await league_service.submit_score(db, league_id, score_in)
    leaderboard = league_service.build_leaderboard(league)
    your_rank = next(
        (e.rank for e in leaderboard if e.user_id == score_in.user_id), None
    )
    return SubmissionResult(
        submission=SubmissionRead.model_validate(submission),
        your_rank=your_rank,
        leaderboard=leaderboard[:SUBMISSION_LEADERBOARD_SIZE],
    )


@router.get(
    "/{league_id}/leaderboard",
    response_model=PaginatedResponse[LeagueLeaderboardEntry],
)
async def get_league_leaderboard(
    league_id: int,
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[LeagueLeaderboardEntry]:
    """
    Live standings of a league under its scoring method.

    Ranks reflect the position in the full leaderboard, so the first entry
    of the second page of 10 has rank 11.
    """
    league = await league_service.load_league(db, league_id)
    leaderboard = league_service.build_leaderboard(league)
    return PaginatedResponse[LeagueLeaderboardEntry].from_slice(
        leaderboard, skip, limit
    )
