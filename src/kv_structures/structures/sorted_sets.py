import math
from collections.abc import Sequence
from typing import Any

from kv_structures.errors import DeserializationError, InvalidArgumentError
from kv_structures.structures.base import BaseStructure
from kv_structures.utils.compound import StructureKind
from kv_structures.utils.serialization import dump_to_json, load_from_json, verify_list

ScoredMember = tuple[float, str]
"""A sorted set entry. Tuples order by score, then member, which is exactly the set's ordering."""

ScoreBound = float | int | str


def parse_score(value: Any, operation: str) -> float:
    """Parse a score or score bound.

    Strings are accepted, including the "-inf", "+inf" and "inf" sentinels. Booleans and NaN are rejected.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError(message="Score is not a number.", operation=operation, argument=value)

    try:
        score = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(message="Score is not a number.", operation=operation, argument=value) from e

    if math.isnan(score):
        raise InvalidArgumentError(message="Score is not a number.", operation=operation, argument=value)

    return score


def parse_score_member_pairs(args: Sequence[Any], operation: str) -> list[ScoredMember]:
    if len(args) % 2:
        raise InvalidArgumentError(message="Expected alternating score and member arguments.", operation=operation, argument=args)

    return [(parse_score(score, operation=operation), str(member)) for score, member in zip(args[::2], args[1::2])]


def slice_inclusive(entries: list[ScoredMember], start: int, stop: int) -> list[ScoredMember]:
    length = len(entries)

    if start < 0:
        start = max(0, length + start)
    if stop < 0:
        stop = length + stop

    return entries[start : stop + 1]


class SortedSetStructure(BaseStructure[list[ScoredMember]]):
    """Members ordered by ascending score, ties broken by member.

    Every mutation re-sorts the whole sequence, so writes cost O(n log n) in the set's cardinality.
    Members are stored and compared by their string form, so `5` and `"5"` name the same member.
    """

    kind = StructureKind.SORTED_SET

    def empty(self) -> list[ScoredMember]:
        return []

    def decode(self, raw: str) -> list[ScoredMember]:
        entries: list[ScoredMember] = []

        for item in verify_list(load_from_json(json_str=raw)):
            if not (isinstance(item, list) and len(item) == 2):  # noqa: PLR2004
                msg = "Sorted set entry is not a [score, member] pair"
                raise DeserializationError(msg)

            score, member = item

            if isinstance(score, bool) or not isinstance(score, int | float) or math.isnan(score) or not isinstance(member, str):
                msg = "Sorted set entry has an invalid score or member"
                raise DeserializationError(msg)

            entries.append((float(score), member))

        return entries

    def encode(self, value: list[ScoredMember]) -> str:
        return dump_to_json([[score, member] for score, member in value])

    def zadd(self, key: str, *score_members: Any) -> int:
        """Add or update members given as alternating `score, member` arguments.

        Returns the number of members that were not present before. A member repeated within one
        call is counted once and keeps the last score given for it.
        """
        pairs: list[ScoredMember] = parse_score_member_pairs(score_members, operation="zadd")

        def _add(entries: list[ScoredMember]) -> tuple[list[ScoredMember], int]:
            positions: dict[str, int] = {member: position for position, (_, member) in enumerate(entries)}
            added: int = 0

            for score, member in pairs:
                if member in positions:
                    entries[positions[member]] = (score, member)
                else:
                    positions[member] = len(entries)
                    entries.append((score, member))
                    added += 1

            entries.sort()
            return entries, added

        return self.mutate(key, _add)

    def zrem(self, key: str, *members: Any) -> int:
        removing: set[str] = {str(member) for member in members}

        def _remove(entries: list[ScoredMember]) -> tuple[list[ScoredMember] | None, int]:
            remaining = [entry for entry in entries if entry[1] not in removing]
            removed = len(entries) - len(remaining)
            if not removed:
                return None, 0
            return remaining, removed

        return self.mutate(key, _remove)

    def zscore(self, key: str, member: Any) -> float | None:
        member = str(member)

        for score, candidate in self.load(key):
            if candidate == member:
                return score
        return None

    def zrank(self, key: str, member: Any) -> int | None:
        member = str(member)

        for rank, (_, candidate) in enumerate(self.load(key)):
            if candidate == member:
                return rank
        return None

    def zcard(self, key: str) -> int:
        return len(self.load(key))

    def zrange(self, key: str, start: int, stop: int, *, with_scores: bool = False) -> list[str] | list[tuple[str, float]]:
        """Return members by ascending rank from `start` to `stop`, both inclusive.

        Negative indexes count from the end. With `with_scores`, `(member, score)` tuples are returned.
        """
        return self._format(slice_inclusive(self.load(key), start=start, stop=stop), with_scores=with_scores)

    def zrevrange(self, key: str, start: int, stop: int, *, with_scores: bool = False) -> list[str] | list[tuple[str, float]]:
        """Like `zrange`, applied to the members in descending order."""
        return self._format(slice_inclusive(self.load(key)[::-1], start=start, stop=stop), with_scores=with_scores)

    def zrangebyscore(
        self,
        key: str,
        min_score: ScoreBound,
        max_score: ScoreBound,
        *,
        with_scores: bool = False,
        limit: tuple[int, int] | None = None,
    ) -> list[str] | list[tuple[str, float]]:
        """Return members with `min_score <= score <= max_score` in ascending order.

        Args:
            key: The sorted set key.
            min_score: The inclusive lower bound, or "-inf".
            max_score: The inclusive upper bound, or "+inf".
            with_scores: Whether to return `(member, score)` tuples.
            limit: An `(offset, count)` window applied after filtering. A count of 0 or less returns
                everything past the offset; a negative offset returns nothing.
        """
        matching: list[ScoredMember] = self._filter(self.load(key), min_score=min_score, max_score=max_score, operation="zrangebyscore")

        if limit is not None:
            offset, count = limit
            if offset < 0:
                matching = []
            elif count <= 0:
                matching = matching[offset:]
            else:
                matching = matching[offset : offset + count]

        return self._format(matching, with_scores=with_scores)

    def zincrby(self, key: str, delta: float | int | str, member: Any) -> float:
        """Add `delta` to a member's score, creating the member with score `delta` if needed.

        Raises:
            InvalidArgumentError: If the delta is not a number, or the new score would be NaN
                (adding opposite infinities). Nothing is written in that case.
        """
        increment: float = parse_score(delta, operation="zincrby")
        member = str(member)

        def _increment(entries: list[ScoredMember]) -> tuple[list[ScoredMember], float]:
            for position, (score, candidate) in enumerate(entries):
                if candidate == member:
                    new_score = score + increment
                    if math.isnan(new_score):
                        raise InvalidArgumentError(message="Score would become NaN.", operation="zincrby", argument=delta)
                    entries[position] = (new_score, member)
                    break
            else:
                new_score = increment
                entries.append((new_score, member))

            entries.sort()
            return entries, new_score

        return self.mutate(key, _increment)

    def zcount(self, key: str, min_score: ScoreBound, max_score: ScoreBound) -> int:
        return len(self._filter(self.load(key), min_score=min_score, max_score=max_score, operation="zcount"))

    @staticmethod
    def _filter(entries: list[ScoredMember], min_score: ScoreBound, max_score: ScoreBound, operation: str) -> list[ScoredMember]:
        low: float = parse_score(min_score, operation=operation)
        high: float = parse_score(max_score, operation=operation)
        return [entry for entry in entries if low <= entry[0] <= high]

    @staticmethod
    def _format(entries: list[ScoredMember], with_scores: bool) -> list[str] | list[tuple[str, float]]:
        if with_scores:
            return [(member, score) for score, member in entries]
        return [member for _, member in entries]
