"""In-memory fakes for the record store, scoring provider and Redis."""

import asyncio
import copy
from contextlib import asynccontextmanager

from leaguesync.services.errors import StoreError
from leaguesync.services.sleeper_client import (
    LeagueState,
    RosterMatchup,
    SleeperAPIError,
    SleeperErrorType,
)
from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    TEAM_CONFERENCE_ROSTERS,
    TEAM_RECORDS,
    TEAMS,
    Page,
    RecordStore,
)

ALL_TABLES = (SEASONS, CONFERENCES, TEAMS, TEAM_CONFERENCE_ROSTERS, MATCHUPS, TEAM_RECORDS)


class InMemoryStore(RecordStore):
    """
    Dict-backed record store.

    Writes are visible immediately; rollback() restores the last committed
    state. fail_on holds "op" or "op:table" keys that raise StoreError.
    """

    def __init__(self):
        self.tables = {table: [] for table in ALL_TABLES}
        self._committed = copy.deepcopy(self.tables)
        self.fail_on: set[str] = set()
        self.commits = 0
        self.rollbacks = 0

    def seed(self, table, *rows):
        for row in rows:
            self.tables[table].append(dict(row))
        self._committed = copy.deepcopy(self.tables)
        return self

    def rows(self, table):
        return [dict(row) for row in self.tables[table]]

    def row(self, table, row_id):
        for row in self.tables[table]:
            if row.get("id") == row_id:
                return dict(row)
        return None

    def _check(self, op, table):
        if op in self.fail_on or f"{op}:{table}" in self.fail_on:
            raise StoreError(f"{op} on {table} failed")

    def _matching(self, table, filters):
        return [
            row for row in self.tables[table] if all(f.matches(row) for f in filters or [])
        ]

    async def query(self, table, filters=None, order_by=None, page=1, page_size=100):
        self._check("query", table)
        rows = [dict(row) for row in self._matching(table, filters)]
        if order_by is not None:
            rows.sort(
                key=lambda r: (r.get(order_by.name) is None, r.get(order_by.name)),
                reverse=not order_by.ascending,
            )
        start = (page - 1) * page_size
        return Page(rows=rows[start : start + page_size], page=page, page_size=page_size, total=len(rows))

    async def insert(self, table, values):
        self._check("insert", table)
        row = dict(values)
        if table != TEAM_RECORDS and row.get("id") is None:
            row["id"] = max((r["id"] for r in self.tables[table]), default=0) + 1
        self.tables[table].append(row)
        return dict(row)

    async def update(self, table, row_id, values):
        self._check("update", table)
        for row in self.tables[table]:
            if row.get("id") == row_id:
                row.update(values)
                return dict(row)
        raise StoreError(f"{table} row {row_id} not found")

    async def update_where(self, table, filters, values):
        self._check("update", table)
        rows = self._matching(table, filters)
        for row in rows:
            row.update(values)
        return len(rows)

    async def delete(self, table, filters):
        self._check("delete", table)
        keep = [row for row in self.tables[table] if not all(f.matches(row) for f in filters)]
        removed = len(self.tables[table]) - len(keep)
        self.tables[table] = keep
        return removed

    async def commit(self):
        self._check("commit", "")
        self._committed = copy.deepcopy(self.tables)
        self.commits += 1

    async def rollback(self):
        self.tables = copy.deepcopy(self._committed)
        self.rollbacks += 1


class FakeProvider:
    """Scripted scoring provider keyed by (league_id, week)."""

    def __init__(self, snapshots=None, week=3, season=2024):
        self.snapshots = snapshots or {}
        self.week = week
        self.season = season
        self.failing_leagues: set[str] = set()
        self.state_fails = False
        self.calls: list[tuple[str, int]] = []

    async def fetch_matchups(self, league_id, week):
        self.calls.append((league_id, week))
        if league_id in self.failing_leagues:
            raise SleeperAPIError(
                f"league {league_id} unavailable",
                SleeperErrorType.SERVICE_UNAVAILABLE,
                retryable=True,
            )
        return list(self.snapshots.get((league_id, week), []))

    async def fetch_league_state(self):
        if self.state_fails:
            raise SleeperAPIError("state unavailable", SleeperErrorType.TIMEOUT, retryable=True)
        return LeagueState(week=self.week, season=self.season)


class FakeRedis:
    """The two redis.asyncio calls the sync state store makes."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True


def roster_entry(roster_id, points, matchup_id=None, starters=None):
    starters = starters or []
    return RosterMatchup(
        roster_id=str(roster_id),
        matchup_id=matchup_id,
        points=points,
        projected_points=None,
        starters=starters,
        starters_points=[points / len(starters)] * len(starters) if starters else [],
        players_points={player: points / len(starters) for player in starters},
    )


def store_factory_for(store):
    @asynccontextmanager
    async def open_store():
        yield store

    return open_store


def matchup_row(matchup_id, conference_id, team_1_id, team_2_id, week=3, **overrides):
    row = {
        "id": matchup_id,
        "season_id": 1,
        "conference_id": conference_id,
        "week": week,
        "team_1_id": team_1_id,
        "team_2_id": team_2_id,
        "team_1_score": 0.0,
        "team_2_score": 0.0,
        "winning_team_id": None,
        "is_manual_override": False,
        "scores_frozen": False,
        "is_playoff": False,
        "status": "pending",
        "provider_matchup_id": None,
        "notes": None,
        "completed_at": None,
    }
    row.update(overrides)
    return row


class YieldingStore(InMemoryStore):
    """InMemoryStore whose reads and deletes yield to the event loop like a real database."""

    async def query(self, table, filters=None, order_by=None, page=1, page_size=100):
        await asyncio.sleep(0)
        return await super().query(table, filters, order_by, page, page_size)

    async def delete(self, table, filters):
        await asyncio.sleep(0.01)
        return await super().delete(table, filters)


def seed_league(store):
    """
    Season 2024 (current, week 3) with two conferences.

    Roster ids "10"/"11" exist in both provider leagues:
    - conference 1 (league L1): team 1 -> "10", team 2 -> "11"
    - conference 2 (league L2): team 3 -> "10", team 4 -> "11"
    Week 3 has one pending matchup per conference.
    """
    store.seed(
        SEASONS,
        {"id": 1, "season_name": "2024 Season", "season_year": 2024, "is_current": True, "current_week": 3},
    )
    store.seed(
        CONFERENCES,
        {"id": 1, "conference_name": "Legends", "league_id": "L1", "season_id": 1, "is_active": True},
        {"id": 2, "conference_name": "Mavericks", "league_id": "L2", "season_id": 1, "is_active": True},
    )
    store.seed(
        TEAMS,
        *[
            {"id": team_id, "team_name": f"Team {team_id}", "owner_name": f"Owner {team_id}", "owner_id": f"u{team_id}"}
            for team_id in (1, 2, 3, 4)
        ],
    )
    store.seed(
        TEAM_CONFERENCE_ROSTERS,
        {"id": 1, "team_id": 1, "conference_id": 1, "roster_id": "10", "is_active": True},
        {"id": 2, "team_id": 2, "conference_id": 1, "roster_id": "11", "is_active": True},
        {"id": 3, "team_id": 3, "conference_id": 2, "roster_id": "10", "is_active": True},
        {"id": 4, "team_id": 4, "conference_id": 2, "roster_id": "11", "is_active": True},
    )
    store.seed(
        MATCHUPS,
        matchup_row(1, 1, 1, 2),
        matchup_row(2, 2, 3, 4),
    )
    return store
