import dataclasses
import random
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..errors import DependencyUnavailable, StoreConflict
from ..models import (
    AchievementDefinition,
    CatalogItem,
    CookieAward,
    CookieStats,
    GrassAward,
    RewardEvent,
    TimedSession,
)
from .catalog_helper import CatalogHelper
from .economy_helper import EconomyHelper
from .game_state_helper import COOKIE_STATS, REWARD_EVENTS, GameStateHelper, user_key
from .logging_helper import LoggingHelper
from .time_helper import TimeHelper

COOKIE_REWARD = "cookie"
CURRENCY_REWARD = "currency"

FLOWER_REWARD_TYPE = "flower"
ORNAMENT_BONUS_REWARD_TYPE = "ornament_bonus"

STREAK_GAP_SECONDS = 36 * 60 * 60
ORNAMENT_BONUS_CHANCE = 0.2


def cookie_stats_defaults(user_id: int) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "total_cookies": 0,
        "current_streak": 0,
        "longest_streak": 0,
        "last_cookie_timestamp": None,
    }


def event_key(reward_kind: str, source_session_id: Optional[str]) -> str:
    """Sourced events are keyed by their session, so a session can produce at most one."""
    if source_session_id:
        return f"{reward_kind}:{source_session_id}"
    return f"{reward_kind}:{uuid.uuid4().hex}"


class RewardHelper:
    """
    Turns completed sessions into reward events and keeps the cached stats in step with them.
    The event row is written first and is the authority; stats are a projection of the events.
    """

    def __init__(self, game_state_helper: GameStateHelper, economy_helper: EconomyHelper,
                 catalog_helper: CatalogHelper, logger: LoggingHelper, rng: Optional[random.Random] = None,
                 clock: Callable[[], int] = TimeHelper.get_current_timestamp):
        self.game_state_helper = game_state_helper
        self.economy = economy_helper
        self.catalog = catalog_helper
        self.logger = logger
        self.rng = rng or random.Random()
        self.clock = clock

    # --- Events ---

    async def _insert_event(self, user_id: int, reward_kind: str, reward_type: str,
                            source_session_id: Optional[str], streak_count: int = 0) -> Optional[RewardEvent]:
        """Appends an event. Returns None if the source session already has one."""
        key = event_key(reward_kind, source_session_id)
        row = {
            "id": key,
            "user_id": user_id,
            "reward_kind": reward_kind,
            "reward_type": reward_type,
            "created_at": self.clock(),
            "source_session_id": source_session_id,
            "streak_count": streak_count,
            "bonus_ornament": None,
        }
        try:
            await self.game_state_helper.insert(REWARD_EVENTS, key, row)
        except StoreConflict:
            return None
        return RewardEvent(**row)

    async def get_event_for_session(self, user_id: int, reward_kind: str,
                                    session_id: str) -> Optional[RewardEvent]:
        row = await self.game_state_helper.fetch(REWARD_EVENTS, event_key(reward_kind, session_id), owner=user_id)
        return RewardEvent(**row) if row else None

    async def get_reward_events(self, user_id: int, reward_kind: Optional[str] = None) -> List[RewardEvent]:
        filters = {"user_id": user_id}
        if reward_kind:
            filters["reward_kind"] = reward_kind
        rows = await self.game_state_helper.select(REWARD_EVENTS, **filters)
        return sorted((RewardEvent(**row) for row in rows), key=lambda e: (e.created_at, e.id))

    # --- Cookies ---

    async def get_cookie_stats(self, user_id: int) -> CookieStats:
        row = await self.game_state_helper.fetch(COOKIE_STATS, user_key(user_id), owner=user_id)
        return CookieStats(**(row or cookie_stats_defaults(user_id)))

    @staticmethod
    def next_streak(current_streak: int, last_cookie_timestamp: Optional[int], now: int) -> int:
        if last_cookie_timestamp is None or now - last_cookie_timestamp > STREAK_GAP_SECONDS:
            return 1
        return current_streak + 1

    async def grant_cookie(self, user_id: int, source_session_id: Optional[str] = None) -> CookieAward:
        """
        Grants one cookie and advances the streak. The per-user cookie stats lock makes the
        streak computation and the stats write a single unit per cookie.
        """
        async with self.game_state_helper.row_lock(COOKIE_STATS, user_key(user_id)):
            if source_session_id:
                existing = await self.get_event_for_session(user_id, COOKIE_REWARD, source_session_id)
                if existing is not None:
                    return await self._replay_cookie_award(existing)

            now = self.clock()
            stats = await self.get_cookie_stats(user_id)
            streak = self.next_streak(stats.current_streak, stats.last_cookie_timestamp, now)
            cookie_type = self.catalog.draw_cookie_type(self.rng)

            event = await self._insert_event(user_id, COOKIE_REWARD, cookie_type, source_session_id, streak)
            if event is None:
                existing = await self.get_event_for_session(user_id, COOKIE_REWARD, source_session_id)
                return await self._replay_cookie_award(existing)

            def _apply_cookie(row: Dict[str, Any]) -> Dict[str, Any]:
                row["current_streak"] = self.next_streak(row["current_streak"], row["last_cookie_timestamp"], now)
                row["longest_streak"] = max(row["longest_streak"], row["current_streak"])
                row["total_cookies"] += 1
                row["last_cookie_timestamp"] = now
                return row

            updated = CookieStats(**await self.game_state_helper.update_row(
                COOKIE_STATS, user_key(user_id), _apply_cookie, cookie_stats_defaults(user_id)))

        return CookieAward(event=event, cookie_type=cookie_type, streak=updated.current_streak,
                           longest_streak=updated.longest_streak, total_cookies=updated.total_cookies)

    async def _replay_cookie_award(self, event: RewardEvent) -> CookieAward:
        stats = await self.get_cookie_stats(event.user_id)
        return CookieAward(event=event, cookie_type=event.reward_type, streak=event.streak_count,
                           longest_streak=stats.longest_streak, total_cookies=stats.total_cookies)

    async def cookie_counts(self, user_id: int) -> Dict[str, int]:
        """Cookies earned per type, in catalog order. Types never earned count 0."""
        counts = {cookie.id: 0 for cookie in self.catalog.cookies}
        for event in await self.get_reward_events(user_id, COOKIE_REWARD):
            counts[event.reward_type] = counts.get(event.reward_type, 0) + 1
        return counts

    async def on_hunger_session_completed(self, session: TimedSession) -> CookieAward:
        return await self.grant_cookie(session.user_id, session.id)

    # --- Garden currency ---

    async def on_grass_session_completed(self, session: TimedSession) -> GrassAward:
        """
        One unit of currency, always. Separately, a 20% roll may add a bonus ornament to
        inventory; if the ornament subsystem is unavailable the bonus is dropped and logged.
        """
        event = await self._insert_event(session.user_id, CURRENCY_REWARD, FLOWER_REWARD_TYPE, session.id)
        if event is None:
            existing = await self.get_event_for_session(session.user_id, CURRENCY_REWARD, session.id)
            return await self._replay_grass_award(existing)

        stats = await self.economy.credit_session_reward(session.user_id)
        await self.economy.reconcile(session.user_id)

        bonus = None
        if self.rng.random() < ORNAMENT_BONUS_CHANCE:
            bonus = await self._grant_bonus_ornament(event)
            if bonus is not None:
                event = dataclasses.replace(event, bonus_ornament=bonus.item_type)

        return GrassAward(event=event, currency_available=stats.currency_available,
                          total_sessions_completed=stats.total_sessions_completed, bonus_ornament=bonus)

    async def _grant_bonus_ornament(self, event: RewardEvent) -> Optional[CatalogItem]:
        ornament = self.catalog.draw_ornament(self.rng)
        try:
            await self.economy.add_to_inventory(event.user_id, ornament)
        except DependencyUnavailable as e:
            await self.logger.log_to_discord(
                f"Rewards: Ornament bonus '{ornament.item_type}' for user {event.user_id} dropped ({e}). "
                f"Currency grant stands.", "WARNING")
            return None

        await self.game_state_helper.compare_and_set(
            REWARD_EVENTS, event.id, {"bonus_ornament": None}, {"bonus_ornament": ornament.item_type})
        return ornament

    async def _replay_grass_award(self, event: RewardEvent) -> GrassAward:
        stats = await self.economy.get_garden_stats(event.user_id)
        bonus = self.catalog.ornament_item(event.bonus_ornament) if event.bonus_ornament else None
        return GrassAward(event=event, currency_available=stats.currency_available,
                          total_sessions_completed=stats.total_sessions_completed, bonus_ornament=bonus)

    # --- Achievements ---

    def unlocked_achievements(self, stats: CookieStats) -> List[AchievementDefinition]:
        """Recomputed on every call; monotonic in total_cookies and longest_streak."""
        unlocked = []
        for achievement in self.catalog.achievements:
            progress = stats.longest_streak if achievement.is_streak else stats.total_cookies
            if progress >= achievement.requirement:
                unlocked.append(achievement)
        return unlocked

    def next_achievement(self, stats: CookieStats) -> Optional[AchievementDefinition]:
        unlocked = {a.id for a in self.unlocked_achievements(stats)}
        return next((a for a in self.catalog.achievements if a.id not in unlocked), None)

    # --- Audit ---

    @staticmethod
    def fold_cookie_stats(user_id: int, events: Iterable[RewardEvent]) -> CookieStats:
        """Rebuilds cookie stats from the event log alone."""
        folded = CookieStats(user_id=user_id)
        for event in sorted(events, key=lambda e: (e.created_at, e.id)):
            if event.reward_kind != COOKIE_REWARD:
                continue
            folded.current_streak = RewardHelper.next_streak(
                folded.current_streak, folded.last_cookie_timestamp, event.created_at)
            folded.longest_streak = max(folded.longest_streak, folded.current_streak)
            folded.total_cookies += 1
            folded.last_cookie_timestamp = event.created_at
        return folded

    async def audit_stats(self, user_id: int) -> Dict[str, Any]:
        """Compares the cached totals against a fold over the reward events. Returns the drifted fields."""
        events = await self.get_reward_events(user_id)
        folded = self.fold_cookie_stats(user_id, events)
        cached = await self.get_cookie_stats(user_id)
        garden = await self.economy.get_garden_stats(user_id)
        currency_events = sum(1 for e in events if e.reward_kind == CURRENCY_REWARD)

        expected = {
            "total_cookies": folded.total_cookies,
            "current_streak": folded.current_streak,
            "longest_streak": folded.longest_streak,
            "total_sessions_completed": currency_events,
            "total_currency_earned": currency_events,
        }
        actual = {
            "total_cookies": cached.total_cookies,
            "current_streak": cached.current_streak,
            "longest_streak": cached.longest_streak,
            "total_sessions_completed": garden.total_sessions_completed,
            "total_currency_earned": garden.total_currency_earned,
        }
        drift = {name: (expected[name], actual[name]) for name in expected if expected[name] != actual[name]}

        if drift:
            await self.logger.log_to_discord(f"Audit: Stats drift for user {user_id}: {drift}", "WARNING")
        return drift
