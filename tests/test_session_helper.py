import asyncio

from funger.helpers.game_state_helper import REWARD_EVENTS
from funger.models import GRASS, HUNGER, ErrorCode

GRASS_SECONDS = 30 * 60


async def test_start_creates_an_open_session(sessions, clock):
    result = await sessions.start_session(1, GRASS)

    assert result.ok
    session = result.value
    assert session.is_open
    assert session.start_time == clock.now
    assert session.planned_duration_seconds == GRASS_SECONDS
    assert (await sessions.get_active_session(1, GRASS)).id == session.id


async def test_only_one_open_session_per_kind(sessions):
    assert (await sessions.start_session(1, GRASS)).ok

    again = await sessions.start_session(1, GRASS)

    assert not again.ok
    assert again.error == ErrorCode.ALREADY_RUNNING
    assert (await sessions.start_session(1, HUNGER)).ok
    assert (await sessions.start_session(2, GRASS)).ok


async def test_concurrent_starts_open_a_single_session(sessions):
    results = await asyncio.gather(*[sessions.start_session(1, HUNGER) for _ in range(3)])

    assert sum(1 for r in results if r.ok) == 1
    assert len(await sessions.get_session_history(1, HUNGER)) == 1


async def test_grass_length_follows_settings(sessions, store):
    store.set_global_state("grass_session_minutes", 10)

    session = (await sessions.start_session(1, GRASS)).value

    assert session.planned_duration_seconds == 600


async def test_complete_records_duration_and_reward_type(sessions, economy, clock):
    session = (await sessions.start_session(1, GRASS)).value
    clock.advance(GRASS_SECONDS + 5)

    result = await sessions.complete_session(1, session.id)

    assert result.ok
    completed = result.value.session
    assert completed.completed
    assert completed.end_time == clock.now
    assert completed.duration_seconds == GRASS_SECONDS + 5
    assert completed.reward_type == "flower"
    assert not result.value.already_completed
    assert (await economy.get_garden_stats(1)).currency_available == 1
    assert await sessions.get_active_session(1, GRASS) is None


async def test_repeated_completion_grants_once(sessions, economy, store):
    session = (await sessions.start_session(1, GRASS)).value

    first = await sessions.complete_session(1, session.id)
    second = await sessions.complete_session(1, session.id)

    assert first.ok and second.ok
    assert second.value.already_completed
    assert second.value.award.event.id == first.value.award.event.id
    stats = await economy.get_garden_stats(1)
    assert stats.total_sessions_completed == 1
    assert stats.currency_available == 1
    assert len(await store.select(REWARD_EVENTS, user_id=1)) == 1


async def test_concurrent_completion_converges_to_one_reward(sessions, economy, store):
    session = (await sessions.start_session(1, GRASS)).value

    results = await asyncio.gather(sessions.complete_session(1, session.id),
                                   sessions.complete_session(1, session.id))

    assert all(r.ok for r in results)
    assert sorted(r.value.already_completed for r in results) == [False, True]
    assert (await economy.get_garden_stats(1)).total_sessions_completed == 1
    assert len(await store.select(REWARD_EVENTS, user_id=1)) == 1


async def test_concurrent_hunger_completion_grants_one_cookie(sessions, rewards):
    session = (await sessions.start_session(1, HUNGER)).value

    await asyncio.gather(*[sessions.complete_session(1, session.id) for _ in range(3)])

    stats = await rewards.get_cookie_stats(1)
    assert stats.total_cookies == 1
    assert stats.current_streak == 1


async def test_cancel_is_terminal(sessions, economy):
    session = (await sessions.start_session(1, GRASS)).value

    cancelled = await sessions.cancel_session(1, session.id)
    complete_after = await sessions.complete_session(1, session.id)
    cancel_again = await sessions.cancel_session(1, session.id)

    assert cancelled.ok
    assert cancelled.value.is_cancelled
    assert complete_after.error == ErrorCode.SESSION_NOT_OPEN
    assert cancel_again.error == ErrorCode.SESSION_NOT_OPEN
    assert (await economy.get_garden_stats(1)).currency_available == 0
    assert (await sessions.start_session(1, GRASS)).ok


async def test_completed_session_cannot_be_cancelled(sessions):
    session = (await sessions.start_session(1, HUNGER)).value
    await sessions.complete_session(1, session.id)

    result = await sessions.cancel_session(1, session.id)

    assert result.error == ErrorCode.SESSION_NOT_OPEN


async def test_sessions_are_private_to_their_owner(sessions):
    session = (await sessions.start_session(1, HUNGER)).value

    assert (await sessions.complete_session(2, session.id)).error == ErrorCode.SESSION_NOT_FOUND
    assert (await sessions.cancel_session(2, session.id)).error == ErrorCode.SESSION_NOT_FOUND
    assert (await sessions.complete_session(1, "missing")).error == ErrorCode.SESSION_NOT_FOUND


async def test_recovery_completes_overdue_grass_sessions_only(sessions, economy, clock):
    await sessions.start_session(1, GRASS)
    await sessions.start_session(1, HUNGER)

    clock.advance(GRASS_SECONDS - 1)
    assert await sessions.recover_overdue_sessions(1) == []

    clock.advance(1)
    recovered = await sessions.recover_overdue_sessions(1)

    assert [c.session.kind for c in recovered] == [GRASS]
    assert (await economy.get_garden_stats(1)).currency_available == 1
    assert await sessions.get_active_session(1, HUNGER) is not None


async def test_unvisited_sessions_stay_open(sessions, clock):
    session = (await sessions.start_session(1, GRASS)).value
    clock.advance(7 * 24 * 60 * 60)

    assert (await sessions.get_active_session(1, GRASS)).id == session.id


async def test_history_is_newest_first_and_limited(sessions, clock):
    for _ in range(4):
        session = (await sessions.start_session(1, HUNGER)).value
        clock.advance(60)
        await sessions.complete_session(1, session.id)

    history = await sessions.get_session_history(1, HUNGER, limit=3)

    assert len(history) == 3
    assert [s.start_time for s in history] == sorted((s.start_time for s in history), reverse=True)
