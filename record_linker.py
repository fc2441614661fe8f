# record_linker.py
"""
Link schedule records (no crowd figures) to attendance records (crowd
figures, thin metadata) so each match ends up as a single row.

Matching runs in two passes:
  1. exact: (local match date, home team, away team)
  2. key:   (local match date, order-independent team pair key)

The second pass only sees rows the first pass left over. The schedule's
home/away assignment always wins in the output.
"""
import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from afl_config import DEFAULT_CONFIG, LinkConfig, TEAM_NAME_MAP, venue_timezone
from afl_errors import UnmatchedRecordWarning

logger = logging.getLogger(__name__)

SCHEDULE_REQUIRED = ["date", "home_team", "away_team", "venue"]
ATTENDANCE_REQUIRED = ["date", "home_team", "away_team", "venue", "crowd"]

PASS_EXACT = "exact"
PASS_KEY = "key"

# Columns the linker adds to the schedule.
ATTENDANCE_PAYLOAD = [
    "crowd", "venue_att", "att_home_score", "att_away_score",
    "att_home_team", "att_away_team", "match_pass",
]
MERGE_SUFFIXES = ("", "_att_dup")


# =========================
# TEAM NORMALISATION
# =========================
def normalize_team(name, team_map: Mapping[str, str] = TEAM_NAME_MAP):
    if pd.isna(name):
        return name
    s = re.sub(r"\s+", " ", str(name)).strip()
    return team_map.get(s, s)


def normalize_teams(
    df: pd.DataFrame,
    team_map: Mapping[str, str] = TEAM_NAME_MAP,
    cols: Iterable[str] = ("home_team", "away_team"),
) -> pd.DataFrame:
    out = df.copy()
    for c in cols:
        out[c] = out[c].map(lambda x: normalize_team(x, team_map))
    return out


# =========================
# JOIN KEY
# =========================
def build_key(team_a: str, team_b: str, sep: str = "_") -> str:
    """Same key whichever team is listed first."""
    return sep.join(sorted([str(team_a).lower(), str(team_b).lower()]))


def add_join_key(df: pd.DataFrame, sep: str = "_") -> pd.DataFrame:
    out = df.copy()
    out["join_key"] = [build_key(h, a, sep) for h, a in zip(out["home_team"], out["away_team"])]
    return out


# =========================
# DATES
# =========================
def local_match_dates(df: pd.DataFrame, config: LinkConfig = DEFAULT_CONFIG) -> pd.Series:
    """
    Calendar date of each match at its venue.

    Timezone-aware timestamps are shifted into the venue's timezone first;
    naive ones are taken as UTC. The attendance source records local
    dates, so a morning game in Sydney must not fall back a day to its
    UTC date.
    """
    ts = pd.to_datetime(df["date"])
    if not isinstance(ts.dtype, pd.DatetimeTZDtype):
        ts = ts.dt.tz_localize("UTC")

    tzs = df["venue"].map(lambda v: venue_timezone(v, config))
    local = [t.tz_convert(z).tz_localize(None).normalize() for t, z in zip(ts, tzs)]
    return pd.Series(pd.to_datetime(local), index=df.index, dtype="datetime64[ns]")


def calendar_dates(df: pd.DataFrame) -> pd.Series:
    ts = pd.to_datetime(df["date"])
    if isinstance(ts.dtype, pd.DatetimeTZDtype):
        ts = ts.dt.tz_localize(None)
    return ts.dt.normalize().astype("datetime64[ns]")


# =========================
# MATCHER
# =========================
@dataclass(frozen=True)
class LinkResult:
    matched: pd.DataFrame
    unmatched: pd.DataFrame
    # attendance rows that lost out to another row for an already linked game
    surplus: pd.DataFrame = field(default_factory=pd.DataFrame)

    def summary(self) -> Dict[str, int]:
        passes = self.matched["match_pass"].value_counts() if len(self.matched) else pd.Series(dtype=int)
        return {
            "matched": int(len(self.matched)),
            "exact": int(passes.get(PASS_EXACT, 0)),
            "key": int(passes.get(PASS_KEY, 0)),
            "unmatched": int(len(self.unmatched)),
            "surplus": int(len(self.surplus)),
        }


def _require(df: pd.DataFrame, cols, label: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"{label} missing required columns: {missing}")


def _reject_payload_columns(schedule: pd.DataFrame) -> None:
    clash = [c for c in ATTENDANCE_PAYLOAD if c in schedule.columns]
    if clash:
        raise ValueError(f"schedule already has attendance columns: {clash}")


def _prepare_schedule(schedule: pd.DataFrame, config: LinkConfig) -> pd.DataFrame:
    s = normalize_teams(schedule, config.team_map).reset_index(drop=True)
    s["match_date"] = local_match_dates(s, config)
    s = add_join_key(s, config.key_sep)
    s["_sid"] = range(len(s))
    return s


def _prepare_attendance(attendance: pd.DataFrame, config: LinkConfig) -> pd.DataFrame:
    a = normalize_teams(attendance, config.team_map).reset_index(drop=True)
    a["match_date"] = calendar_dates(a)
    a = add_join_key(a, config.key_sep)
    a["_aid"] = range(len(a))

    for col in ["home_score", "away_score"]:
        if col not in a.columns:
            a[col] = pd.NA

    return a[[
        "_aid", "match_date", "join_key", "home_team", "away_team",
        "crowd", "venue", "home_score", "away_score",
    ]].rename(columns={
        "home_team": "att_home_team",
        "away_team": "att_away_team",
        "venue": "venue_att",
        "home_score": "att_home_score",
        "away_score": "att_away_score",
    })


def _pair_by_rank(
    sched: pd.DataFrame,
    att: pd.DataFrame,
    sched_keys: List[str],
    att_keys: List[str],
) -> pd.DataFrame:
    """
    Pair the k-th schedule row with the k-th attendance row of each join
    group, both counted in input order. Every row is used at most once and
    a group yields min(schedule rows, attendance rows) pairs.
    """
    s = sched.assign(_rank=sched.groupby(sched_keys, dropna=False).cumcount())
    a = att.assign(_rank=att.groupby(att_keys, dropna=False).cumcount())
    m = s.merge(
        a,
        left_on=sched_keys + ["_rank"],
        right_on=att_keys + ["_rank"],
        how="inner",
        suffixes=MERGE_SUFFIXES,
    )
    return m.drop(columns=["_rank"])


def _surplus_candidates(att: pd.DataFrame, matched: pd.DataFrame) -> pd.DataFrame:
    unused = att[~att["_aid"].isin(matched["_aid"])]
    linked = matched[["match_date", "join_key"]].drop_duplicates()
    out = unused.merge(linked, on=["match_date", "join_key"], how="inner").sort_values("_aid")
    out = out.rename(columns={
        "att_home_team": "home_team",
        "att_away_team": "away_team",
        "venue_att": "venue",
        "att_home_score": "home_score",
        "att_away_score": "away_score",
    })
    return out.drop(columns=["_aid"]).reset_index(drop=True)


def link_records(
    schedule: pd.DataFrame,
    attendance: pd.DataFrame,
    config: LinkConfig = DEFAULT_CONFIG,
) -> LinkResult:
    """
    Partition the schedule into rows with a crowd figure and rows without.

    Attendance rows that share a date and team pair with a linked game but
    were not used are returned as `surplus`.

    Pure: neither input is modified and nothing is logged or warned here;
    see report_unmatched().
    """
    _require(schedule, SCHEDULE_REQUIRED, "schedule")
    _require(attendance, ATTENDANCE_REQUIRED, "attendance")
    _reject_payload_columns(schedule)

    sched = _prepare_schedule(schedule, config)
    att = _prepare_attendance(attendance, config)

    # pass 1: exact home/away
    exact = _pair_by_rank(
        sched, att,
        ["match_date", "home_team", "away_team"],
        ["match_date", "att_home_team", "att_away_team"],
    )
    exact["match_pass"] = PASS_EXACT

    # pass 2: symmetric key over what is left on both sides
    rest_s = sched[~sched["_sid"].isin(exact["_sid"])]
    rest_a = att[~att["_aid"].isin(exact["_aid"])]
    keyed = _pair_by_rank(rest_s, rest_a, ["match_date", "join_key"], ["match_date", "join_key"])
    keyed["match_pass"] = PASS_KEY

    swapped = keyed["att_home_team"] != keyed["home_team"]
    keyed.loc[swapped, ["att_home_score", "att_away_score"]] = (
        keyed.loc[swapped, ["att_away_score", "att_home_score"]].values
    )

    matched = pd.concat([exact, keyed], ignore_index=True).sort_values("_sid")
    unmatched = sched[~sched["_sid"].isin(matched["_sid"])]
    surplus = _surplus_candidates(att, matched)

    drop = ["_sid", "_aid", "att_home_team", "att_away_team"]
    drop += [c for c in matched.columns if c.endswith(MERGE_SUFFIXES[1])]
    matched = matched.drop(columns=[c for c in drop if c in matched.columns])
    unmatched = unmatched.drop(columns=["_sid"])

    return LinkResult(
        matched=matched.reset_index(drop=True),
        unmatched=unmatched.reset_index(drop=True),
        surplus=surplus,
    )


def report_unmatched(result: LinkResult) -> pd.DataFrame:
    """Log every unmatched schedule record and raise one warning for the batch."""
    for r in result.surplus.itertuples(index=False):
        logger.warning(
            "Unused attendance record %s %s v %s at %s (crowd %s): game already linked",
            pd.Timestamp(r.match_date).date(), r.home_team, r.away_team, r.venue, r.crowd,
        )

    un = result.unmatched
    if un.empty:
        logger.info("All %d schedule records matched an attendance record", len(result.matched))
        return un

    for r in un.itertuples(index=False):
        logger.warning(
            "No attendance record for %s %s v %s at %s",
            pd.Timestamp(r.match_date).date(), r.home_team, r.away_team, r.venue,
        )
    warnings.warn(
        f"{len(un)} schedule record(s) have no attendance record after exact and key passes",
        UnmatchedRecordWarning,
        stacklevel=2,
    )
    return un
