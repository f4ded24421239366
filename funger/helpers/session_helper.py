import dataclasses
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..models import (
    GRASS,
    HUNGER,
    SESSION_KINDS,
    CompletionResult,
    CookieAward,
    ErrorCode,
    GrassAward,
    OperationResult,
    TimedSession,
)
from .game_state_helper import SESSIONS, GameStateHelper
from .logging_helper import LoggingHelper
from .reward_helper import ORNAMENT_BONUS_REWARD_TYPE, FLOWER_REWARD_TYPE, RewardHelper
from .time_helper import TimeHelper


class SessionHelper:
    """
    Lifecycle of timed sessions: OPEN -> COMPLETED or OPEN -> CANCELLED, both terminal.

    Expiry is never enforced here. A grass session past its planned duration stays open until
    its owner comes back and `recover_overdue_sessions` (or an explicit completion) closes it.
    """

    def __init__(self, game_state_helper: GameStateHelper, reward_helper: RewardHelper, logger: LoggingHelper,
                 clock: Callable[[], int] = TimeHelper.get_current_timestamp):
        self.game_state_helper = game_state_helper
        self.reward_helper = reward_helper
        self.logger = logger
        self.clock = clock

    def default_duration(self, kind: str) -> int:
        """Hunger episodes are open-ended; grass breaks use the configured length."""
        if kind == GRASS:
            return int(self.game_state_helper.get_global_state("grass_session_minutes", 30)) * 60
        return 0

    async def _get_session(self, user_id: int, session_id: str) -> Optional[TimedSession]:
        row = await self.game_state_helper.fetch(SESSIONS, session_id, owner=user_id)
        return TimedSession(**row) if row else None

    # --- Lifecycle ---

    async def start_session(self, user_id: int, kind: str,
                            planned_duration_seconds: Optional[int] = None) -> OperationResult:
        if kind not in SESSION_KINDS:
            raise ValueError(f"Unknown session kind '{kind}'.")

        if planned_duration_seconds is None:
            planned_duration_seconds = self.default_duration(kind)

        async with self.game_state_helper.row_lock(SESSIONS, f"open:{user_id}:{kind}"):
            active = await self.get_active_session(user_id, kind)
            if active is not None:
                return OperationResult.failure(
                    ErrorCode.ALREADY_RUNNING,
                    f"A {kind} session is already running (started <t:{active.start_time}:R>).")

            session = TimedSession(
                id=uuid.uuid4().hex,
                user_id=user_id,
                kind=kind,
                start_time=self.clock(),
                planned_duration_seconds=max(0, planned_duration_seconds),
            )
            await self.game_state_helper.insert(SESSIONS, session.id, dataclasses.asdict(session))

        return OperationResult.success(session)

    async def get_active_session(self, user_id: int, kind: str) -> Optional[TimedSession]:
        rows = await self.game_state_helper.select(SESSIONS, user_id=user_id, kind=kind, end_time=None)
        sessions = [TimedSession(**row) for row in rows if not row["completed"]]
        return max(sessions, key=lambda s: s.start_time) if sessions else None

    async def complete_session(self, user_id: int, session_id: str) -> OperationResult:
        """
        Closes an open session and grants its reward. Repeated or concurrent calls converge on a
        single reward: the completed flag flips exactly once, and the reward event is keyed by session.
        """
        async with self.game_state_helper.row_lock(SESSIONS, session_id):
            session = await self._get_session(user_id, session_id)
            if session is None:
                return OperationResult.failure(ErrorCode.SESSION_NOT_FOUND, "No such session.")

            if session.completed:
                award = await self._grant_reward(session)
                return OperationResult.success(CompletionResult(session, award, already_completed=True))

            if session.is_cancelled:
                return OperationResult.failure(ErrorCode.SESSION_NOT_OPEN, "That session was cancelled.")

            now = self.clock()
            changes = {"completed": True, "end_time": now, "duration_seconds": max(0, now - session.start_time)}
            if not await self.game_state_helper.compare_and_set(
                    SESSIONS, session_id, {"completed": False, "end_time": None}, changes):
                session = await self._get_session(user_id, session_id)
                if session is None or not session.completed:
                    return OperationResult.failure(ErrorCode.SESSION_NOT_OPEN, "That session is no longer open.")
                award = await self._grant_reward(session)
                return OperationResult.success(CompletionResult(session, award, already_completed=True))

            for field, value in changes.items():
                setattr(session, field, value)

            award = await self._grant_reward(session)

            reward_type = self._reward_type(award)
            await self.game_state_helper.compare_and_set(
                SESSIONS, session_id, {"reward_type": None}, {"reward_type": reward_type})
            session.reward_type = reward_type

        return OperationResult.success(CompletionResult(session, award))

    async def _grant_reward(self, session: TimedSession):
        """Idempotent per session: the reward helper replays an existing event without writing."""
        if session.kind == HUNGER:
            return await self.reward_helper.on_hunger_session_completed(session)
        return await self.reward_helper.on_grass_session_completed(session)

    @staticmethod
    def _reward_type(award: Any) -> str:
        if isinstance(award, CookieAward):
            return award.cookie_type
        if isinstance(award, GrassAward) and award.bonus_ornament is not None:
            return ORNAMENT_BONUS_REWARD_TYPE
        return FLOWER_REWARD_TYPE

    async def cancel_session(self, user_id: int, session_id: str) -> OperationResult:
        async with self.game_state_helper.row_lock(SESSIONS, session_id):
            session = await self._get_session(user_id, session_id)
            if session is None:
                return OperationResult.failure(ErrorCode.SESSION_NOT_FOUND, "No such session.")
            if not session.is_open:
                return OperationResult.failure(ErrorCode.SESSION_NOT_OPEN, "That session has already ended.")

            now = self.clock()
            if not await self.game_state_helper.compare_and_set(
                    SESSIONS, session_id, {"completed": False, "end_time": None},
                    {"end_time": now, "duration_seconds": max(0, now - session.start_time)}):
                return OperationResult.failure(ErrorCode.SESSION_NOT_OPEN, "That session has already ended.")

            session.end_time = now
            session.duration_seconds = max(0, now - session.start_time)

        return OperationResult.success(session)

    # --- Recovery & history ---

    async def recover_overdue_sessions(self, user_id: int) -> List[CompletionResult]:
        """Completes every open session whose planned duration has already elapsed."""
        now = self.clock()
        results = []
        for kind in SESSION_KINDS:
            session = await self.get_active_session(user_id, kind)
            if session is None or not session.is_overdue(now):
                continue

            outcome = await self.complete_session(user_id, session.id)
            if outcome.ok:
                results.append(outcome.value)
                await self.logger.log_to_discord(
                    f"Sessions: Recovered overdue {kind} session {session.id} for user {user_id}.", "INFO")
        return results

    async def get_session_history(self, user_id: int, kind: Optional[str] = None,
                                  limit: int = 10) -> List[TimedSession]:
        filters: Dict[str, Any] = {"user_id": user_id}
        if kind:
            filters["kind"] = kind
        rows = await self.game_state_helper.select(SESSIONS, **filters)
        sessions = sorted((TimedSession(**row) for row in rows), key=lambda s: s.start_time, reverse=True)
        return sessions[:limit]
