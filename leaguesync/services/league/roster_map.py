"""Team / conference / provider roster mapping.

Materializes the team_conference_rosters junction into two indexes, one by
internal team id and one by provider roster id. A team may hold one active
link in several conferences, and provider roster ids are only unique inside
their own league, so each key resolves to every link sharing it.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from leaguesync.services.errors import MappingError
from leaguesync.services.store.base import TEAM_CONFERENCE_ROSTERS, Filter, RecordStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RosterLink:
    """Active link between an internal team and a provider roster."""

    team_id: int
    external_roster_id: str
    conference_id: int


def team_key(team_id: int) -> str:
    return f"team_{team_id}"


def roster_key(roster_id: str) -> str:
    return f"roster_{roster_id}"


class RosterMap:
    """
    Bidirectional lookup keyed by "team_<id>" and "roster_<externalId>".

    Built once per sync pass or recompute and passed by reference.
    """

    def __init__(self, links: Iterable[RosterLink] = ()):
        self._links: list[RosterLink] = []
        self._index: dict[str, list[RosterLink]] = defaultdict(list)
        for link in links:
            self._add(link)

    def _add(self, link: RosterLink) -> None:
        for existing in self._index.get(team_key(link.team_id), []):
            if existing.conference_id == link.conference_id:
                raise MappingError(
                    f"Team {link.team_id} has more than one active roster link "
                    f"in conference {link.conference_id}"
                )
        for existing in self._index.get(roster_key(link.external_roster_id), []):
            if existing.conference_id == link.conference_id:
                raise MappingError(
                    f"Roster {link.external_roster_id} is linked to teams "
                    f"{existing.team_id} and {link.team_id} in conference {link.conference_id}"
                )
        self._links.append(link)
        self._index[team_key(link.team_id)].append(link)
        self._index[roster_key(link.external_roster_id)].append(link)

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, key: str) -> bool:
        return key in self._index

    def get(self, key: str) -> tuple[RosterLink, ...]:
        return tuple(self._index.get(key, ()))

    def keys(self) -> list[str]:
        return list(self._index)

    @property
    def links(self) -> tuple[RosterLink, ...]:
        return tuple(self._links)

    def resolve_team(self, team_id: int, conference_id: int | None = None) -> RosterLink | None:
        """
        Find a team's link.

        Prefers the link inside conference_id. A team playing outside its own
        conference (interconference weeks) falls back to its home link, which
        is only defined when the team has exactly one link.
        """
        links = self._index.get(team_key(team_id), [])
        if conference_id is not None:
            for link in links:
                if link.conference_id == conference_id:
                    return link
        if len(links) == 1:
            return links[0]
        return None

    def resolve_roster(self, roster_id: str, conference_id: int) -> RosterLink | None:
        for link in self._index.get(roster_key(str(roster_id)), []):
            if link.conference_id == conference_id:
                return link
        return None

    def team_ids(self, conference_id: int | None = None) -> list[int]:
        return sorted(
            {
                link.team_id
                for link in self._links
                if conference_id is None or link.conference_id == conference_id
            }
        )

    def conference_ids(self) -> list[int]:
        return sorted({link.conference_id for link in self._links})


async def build_roster_map(
    store: RecordStore,
    conference_ids: Iterable[int] | None = None,
) -> RosterMap:
    """
    Build the roster map for the given conferences (empty or None = all).

    Raises:
        MappingError: A requested conference has link rows but none active,
            or an active link is duplicated.
    """
    requested = sorted(set(conference_ids or ()))
    filters = [Filter("conference_id", "in", requested)] if requested else None
    rows = await store.query_all(TEAM_CONFERENCE_ROSTERS, filters=filters)

    active_by_conference: dict[int, int] = defaultdict(int)
    seen_conferences: set[int] = set()
    links = []
    for row in rows:
        conference_id = row["conference_id"]
        seen_conferences.add(conference_id)
        if not row.get("is_active", True):
            continue
        if row.get("roster_id") in (None, ""):
            raise MappingError(
                f"Active link for team {row['team_id']} in conference "
                f"{conference_id} has no roster id"
            )
        active_by_conference[conference_id] += 1
        links.append(
            RosterLink(
                team_id=row["team_id"],
                external_roster_id=str(row["roster_id"]),
                conference_id=conference_id,
            )
        )

    for conference_id in requested:
        if conference_id in seen_conferences and not active_by_conference[conference_id]:
            raise MappingError(f"Conference {conference_id} has no active roster links")

    roster_map = RosterMap(links)
    logger.debug(
        "roster_map_built",
        conferences=requested or "all",
        links=len(roster_map),
    )
    return roster_map
