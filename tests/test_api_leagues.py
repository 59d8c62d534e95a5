# tests/test_api_leagues.py

"""Tests for the league, join and submission endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

# =============================================================================
# Helper Functions
# =============================================================================


def window(start_offset_days: float, length_days: float = 7) -> dict[str, str]:
    start = datetime.now(timezone.utc) + timedelta(days=start_offset_days)
    end = start + timedelta(days=length_days)
    return {"start_at": start.isoformat(), "end_at": end.isoformat()}


async def create_user(client: AsyncClient, username: str) -> int:
    """Helper to create a user and return its ID."""
    res = await client.post(
        "/users/", json={"username": username, "email": f"{username}@example.com"}
    )
    assert res.status_code == 201
    return int(res.json()["id"])


async def create_league(client: AsyncClient, **fields) -> dict:
    """Helper to create an active league and return its JSON."""
    payload = {"name": "Spring Math", "subject": "Math", **window(-1), **fields}
    res = await client.post("/leagues/", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


async def join(client: AsyncClient, league_id: int, user_id: int):
    return await client.post(f"/leagues/{league_id}/join", json={"user_id": user_id})


async def submit(client: AsyncClient, league_id: int, user_id: int, **score):
    payload = {"user_id": user_id, "accuracy": 80, "time_seconds": 60, "points": 10}
    payload.update(score)
    return await client.post(f"/leagues/{league_id}/submissions", json=payload)


# =============================================================================
# Leagues
# =============================================================================


@pytest.mark.asyncio
async def test_create_league(async_client: AsyncClient):
    league = await create_league(async_client, max_submissions=5)

    assert league["status"] == "active"
    assert league["subject"] == "math"
    assert league["scoring_method"] == "accuracy_then_time"
    assert league["participant_count"] == 0
    assert league["spots_remaining"] == 1000
    assert league["duration_in_days"] == 7
    assert league["max_submissions"] == 5


@pytest.mark.asyncio
async def test_read_leagues_filters_by_derived_status(async_client: AsyncClient):
    # 1. ARRANGE: One active, one upcoming, one finished league.
    await create_league(async_client, name="Now")
    await create_league(async_client, name="Soon", **window(3))
    await create_league(async_client, name="Over", **window(-10, 2))

    # 2. ACT
    res = await async_client.get("/leagues/", params={"status": "upcoming"})

    # 3. ASSERT
    assert res.status_code == 200
    data = res.json()
    assert data["total"] == 1
    assert [league["name"] for league in data["items"]] == ["Soon"]
    assert data["items"][0]["status"] == "upcoming"


@pytest.mark.asyncio
async def test_read_leagues_pagination_and_subject(async_client: AsyncClient):
    for i in range(3):
        await create_league(async_client, name=f"Math {i}")
    await create_league(async_client, name="Biology", subject="science")

    res = await async_client.get(
        "/leagues/",
        params={"subject": "math", "limit": 2, "sort_by": "name", "sort_order": "desc"},
    )

    data = res.json()
    assert data["total"] == 3
    assert [league["name"] for league in data["items"]] == ["Math 2", "Math 1"]
    assert data["has_more"] is True


@pytest.mark.asyncio
async def test_cancel_league(async_client: AsyncClient):
    league = await create_league(async_client)

    res = await async_client.post(f"/leagues/{league['id']}/cancel")
    again = await async_client.post(f"/leagues/{league['id']}/cancel")

    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert again.status_code == 409


# =============================================================================
# Joining and submitting
# =============================================================================


@pytest.mark.asyncio
async def test_join_returns_zero_seeded_participant(async_client: AsyncClient):
    league = await create_league(async_client)
    user_id = await create_user(async_client, "ada")

    res = await join(async_client, league["id"], user_id)

    assert res.status_code == 201
    data = res.json()
    assert data["user_id"] == user_id
    assert data["submission_count"] == 0
    assert data["best_points"] == 0
    roster = await async_client.get(f"/leagues/{league['id']}")
    assert roster.json()["participant_count"] == 1


@pytest.mark.asyncio
async def test_submission_returns_rank_and_top_ten(async_client: AsyncClient):
    # 1. ARRANGE
    league = await create_league(async_client, scoring_method="points_only")
    ada = await create_user(async_client, "ada")
    grace = await create_user(async_client, "grace")
    for user_id in (ada, grace):
        assert (await join(async_client, league["id"], user_id)).status_code == 201
    await submit(async_client, league["id"], grace, points=300)

    # 2. ACT
    res = await submit(
        async_client,
        league["id"],
        ada,
        points=120,
        game_data={"questions_answered": 20, "correct_answers": 17, "combo": 4},
    )

    # 3. ASSERT
    assert res.status_code == 201
    data = res.json()
    assert data["submission"]["points"] == 120
    assert data["submission"]["game_data"]["combo"] == 4
    assert data["your_rank"] == 2
    assert [e["username"] for e in data["leaderboard"]] == ["grace", "ada"]


@pytest.mark.asyncio
async def test_fourth_submission_is_rejected(async_client: AsyncClient):
    league = await create_league(async_client)
    user_id = await create_user(async_client, "ada")
    await join(async_client, league["id"], user_id)
    for accuracy in (60, 90, 70):
        assert (
            await submit(async_client, league["id"], user_id, accuracy=accuracy)
        ).status_code == 201

    res = await submit(async_client, league["id"], user_id, accuracy=100)

    assert res.status_code == 409
    assert res.json()["error_type"] == "SubmissionLimitExceededError"
    board = (await async_client.get(f"/leagues/{league['id']}/leaderboard")).json()
    entry = board["items"][0]
    assert entry["accuracy"] == 90
    assert entry["submissions"] == 3
    assert entry["submissions_remaining"] == 0


@pytest.mark.asyncio
async def test_submission_to_upcoming_league_is_rejected(async_client: AsyncClient):
    league = await create_league(async_client, **window(2))
    user_id = await create_user(async_client, "ada")
    assert (await join(async_client, league["id"], user_id)).status_code == 201

    res = await submit(async_client, league["id"], user_id)

    assert res.status_code == 409
    assert res.json()["error_type"] == "LeagueNotActiveError"


@pytest.mark.asyncio
async def test_league_leaderboard_second_page_keeps_ranks(
    async_client: AsyncClient, make_user, make_league, enroll
):
    # 1. ARRANGE: 12 scored participants and one who never submitted.
    league = await make_league(scoring_method="points_only")
    for i in range(12):
        user = await make_user(f"player{i}")
        await enroll(league, user, points=100 - i, submissions=1)
    await enroll(league, await make_user("lurker"))

    # 2. ACT
    res = await async_client.get(
        f"/leagues/{league.id}/leaderboard", params={"skip": 10, "limit": 10}
    )

    # 3. ASSERT
    data = res.json()
    assert data["total"] == 12
    assert [e["rank"] for e in data["items"]] == [11, 12]
    assert [e["username"] for e in data["items"]] == ["player10", "player11"]
    assert data["has_more"] is False


@pytest.mark.asyncio
async def test_submission_updates_user_stats(async_client: AsyncClient):
    league = await create_league(async_client)
    user_id = await create_user(async_client, "ada")
    await join(async_client, league["id"], user_id)

    await submit(async_client, league["id"], user_id, accuracy=80, points=10)
    await submit(async_client, league["id"], user_id, accuracy=90, points=30)
    res = await async_client.get(f"/users/{user_id}")

    assert res.status_code == 200
    data = res.json()
    assert data["games_played"] == 2
    assert data["total_points"] == 40
    assert data["average_accuracy"] == 85
    assert data["best_score"] == 30


@pytest.mark.asyncio
async def test_league_prizes_round_trip(async_client: AsyncClient):
    prizes = [
        {"rank": 1, "description": "Gold trophy", "credits": 500, "badge": "gold"},
        {"rank": 2, "description": "Silver trophy", "credits": 200},
    ]
    league = await create_league(async_client, prizes=prizes)

    res = await async_client.get(f"/leagues/{league['id']}")

    assert res.status_code == 200
    returned = res.json()["prizes"]
    assert [prize["rank"] for prize in returned] == [1, 2]
    assert returned[0]["badge"] == "gold"
    assert returned[1]["badge"] is None
    assert returned[1]["credits"] == 200


@pytest.mark.asyncio
async def test_league_prize_rank_must_be_positive(async_client: AsyncClient):
    res = await async_client.post(
        "/leagues/",
        json={
            "name": "Bad Prize",
            **window(-1),
            "prizes": [{"rank": 0, "description": "Nothing"}],
        },
    )

    assert res.status_code == 422
