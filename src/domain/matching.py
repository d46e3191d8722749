"""
Greedy First-Fit Grouping
=========================

1. **Ordering**   -- pending requests are sorted by ``(pickup_time, id)``.
   The id breaks ties so equal timestamps group the same way regardless
   of the order the store returned them in.
2. **First-fit**  -- each request joins the *first* open group (in
   creation order) that passes every gate, otherwise it opens a new one.
   There is no backtracking and no best-fit search.

Gates (all must pass)
---------------------
* Capacity:    group passengers + request passengers <= vehicle capacity
               (a request larger than a whole vehicle is never grouped)
* Time window: |pickup_time - first member's pickup_time| <= max wait
* Proximity:   pickup strictly within ``pickup_radius_km`` of *some*
               member's pickup AND dropoff strictly within
               ``dropoff_radius_km`` of *some* member's dropoff

No detour bound is enforced; the proximity gate is the only spatial test.

Complexity
----------
Let N = pending requests, G = groups formed so far.

* Sorting:    O(N log N)
* Grouping:   O(N x G x k), k <= capacity members per group
* Worst-case: O(N^2) -- nothing groups, every request scans every group

**Note:** first-fit does not minimise the number of vehicles or total
travel; an optimal partition is a bin-packing variant (NP-hard).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable

from .distance import distance_km
from .entities import MatchedGroup, RideRequest


@dataclass(frozen=True)
class MatchingRules:
    vehicle_capacity: int = 3
    max_wait: timedelta = timedelta(minutes=15)
    pickup_radius_km: float = 3.0
    dropoff_radius_km: float = 5.0


def _sort_key(request: RideRequest):
    return (request.pickup_time, request.id)


class GroupMatcher:
    """Partition pending requests into shareable groups."""

    def __init__(self, rules: MatchingRules | None = None):
        self.rules = rules or MatchingRules()

    def match(self, requests: Iterable[RideRequest]) -> list[MatchedGroup]:
        # Arena of open groups, addressed by creation index.  Only the
        # finished tuples below ever leave this method.
        members: list[list[RideRequest]] = []
        seats: list[int] = []
        reference: list[float] = []

        for request in sorted(requests, key=_sort_key):
            if request.passengers > self.rules.vehicle_capacity:
                # no vehicle can carry it; it stays pending
                continue
            slot = self._first_fit(members, seats, request)
            if slot is None:
                members.append([request])
                seats.append(request.passengers)
                reference.append(distance_km(request.pickup, request.dropoff))
            else:
                members[slot].append(request)
                seats[slot] += request.passengers

        return [
            MatchedGroup(requests=tuple(group), reference_distance_km=ref)
            for group, ref in zip(members, reference)
        ]

    def _first_fit(
        self,
        members: list[list[RideRequest]],
        seats: list[int],
        request: RideRequest,
    ) -> int | None:
        for idx, group in enumerate(members):
            if self.can_join(group, seats[idx], request):
                return idx
        return None

    def can_join(
        self, group: list[RideRequest], seats_taken: int, request: RideRequest
    ) -> bool:
        rules = self.rules

        if seats_taken + request.passengers > rules.vehicle_capacity:
            return False

        if abs(request.pickup_time - group[0].pickup_time) > rules.max_wait:
            return False

        close_pickup = any(
            distance_km(m.pickup, request.pickup) < rules.pickup_radius_km
            for m in group
        )
        if not close_pickup:
            return False

        return any(
            distance_km(m.dropoff, request.dropoff) < rules.dropoff_radius_km
            for m in group
        )
