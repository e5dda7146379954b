"""
Report building blocks: pure reducers over timesheet rows that were already
fetched and filtered by the caller.

Groups keep first-seen order (dicts preserve insertion order); only the daily
view is sorted. Hours are summed with whatever numeric type the rows carry
(Decimal from the database, int/float in tests).
"""
from __future__ import annotations

from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class ReportRow:
    user_id: Hashable
    user_name: str
    project_id: Hashable
    project_name: str
    hours: Number
    date: date | datetime | str
    project_amount: Number | None = None


@dataclass(frozen=True)
class TeamInfo:
    team_id: Hashable
    team_name: str
    member_ids: frozenset = field(default_factory=frozenset)


def day_key(value: date | datetime | str) -> str:
    """ISO calendar date, no timezone conversion."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def total_hours(rows: Iterable[ReportRow]) -> Number:
    return sum((r.hours for r in rows), 0)


def hours_by_user(rows: Iterable[ReportRow]) -> list[dict[str, Any]]:
    acc: dict[Hashable, dict[str, Any]] = {}
    for r in rows:
        rec = acc.get(r.user_id)
        if rec is None:
            rec = {"userId": r.user_id, "userName": r.user_name, "hours": 0, "projects": set()}
            acc[r.user_id] = rec
        rec["hours"] += r.hours
        rec["projects"].add(r.project_id)
    return [{**rec, "projects": len(rec["projects"])} for rec in acc.values()]


def hours_by_project(rows: Iterable[ReportRow]) -> list[dict[str, Any]]:
    """
    revenue is the project amount on the first row seen for the project, not a sum.
    """
    acc: dict[Hashable, dict[str, Any]] = {}
    for r in rows:
        rec = acc.get(r.project_id)
        if rec is None:
            rec = {
                "projectId": r.project_id,
                "projectName": r.project_name,
                "hours": 0,
                "revenue": r.project_amount if r.project_amount is not None else 0,
                "users": set(),
            }
            acc[r.project_id] = rec
        rec["hours"] += r.hours
        rec["users"].add(r.user_id)
    return [{**rec, "users": len(rec["users"])} for rec in acc.values()]


def hours_by_team(teams: Iterable[TeamInfo], rows: Sequence[ReportRow]) -> list[dict[str, Any]]:
    """Teams whose members logged no hours in `rows` are left out."""
    out: list[dict[str, Any]] = []
    for team in teams:
        members = team.member_ids
        team_total = sum((r.hours for r in rows if r.user_id in members), 0)
        if team_total > 0:
            out.append(
                {
                    "teamId": team.team_id,
                    "teamName": team.team_name,
                    "hours": team_total,
                    "members": len(members),
                }
            )
    return out


def hours_by_day(rows: Iterable[ReportRow]) -> list[dict[str, Any]]:
    acc: dict[str, Number] = {}
    for r in rows:
        key = day_key(r.date)
        acc[key] = acc.get(key, 0) + r.hours
    return [{"date": d, "hours": h} for d, h in sorted(acc.items(), key=lambda kv: kv[0])]
