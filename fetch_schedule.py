# fetch_schedule.py
import logging
from typing import Iterable, List

import numpy as np
import pandas as pd
import requests

from afl_config import SQUIGGLE_API, HEADERS, HTTP_TIMEOUT, DEFAULT_CONFIG, LinkConfig
from afl_errors import FetchError
from record_linker import normalize_teams

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = [
    "date", "season", "round", "is_final",
    "home_team", "away_team", "venue",
    "home_score", "away_score",
]
WEATHER_COLUMNS = ["weather_type", "temperature"]

FINALS_ROUND_RE = r"(?i)final|^(?:QF|EF|SF|PF|GF)$"


# =========================
# SQUIGGLE
# =========================
def fetch_squiggle_games(season: int, config: LinkConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    url = f"{SQUIGGLE_API}?q=games;year={int(season)}"
    try:
        r = requests.get(url, headers=HEADERS, timeout=HTTP_TIMEOUT)
        r.raise_for_status()
        games = r.json().get("games", [])
    except requests.RequestException as e:
        raise FetchError(url, str(e)) from e
    except ValueError as e:
        raise FetchError(url, f"invalid JSON: {e}") from e

    rows = []
    for g in games:
        if int(g.get("complete") or 0) < 100:
            continue
        rows.append({
            "date": pd.to_datetime(g["unixtime"], unit="s", utc=True),
            "season": int(g["year"]),
            "round": g.get("roundname") or g.get("round"),
            "is_final": bool(g.get("is_final")),
            "home_team": g["hteam"],
            "away_team": g["ateam"],
            "venue": g.get("venue"),
            "home_score": g.get("hscore"),
            "away_score": g.get("ascore"),
        })

    df = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    for col in WEATHER_COLUMNS:
        df[col] = np.nan
    logger.info("Season %s: %d completed games from Squiggle", season, len(df))
    return normalize_teams(df, config.team_map)


def fetch_schedule(seasons: Iterable[int], config: LinkConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    frames: List[pd.DataFrame] = [fetch_squiggle_games(s, config) for s in seasons]
    if not frames:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS + WEATHER_COLUMNS)
    return pd.concat(frames, ignore_index=True)


# =========================
# CSV EXPORTS
# =========================
def _to_utc(value):
    # exports mix offset-stamped and naive kickoffs, so parse one at a time
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError):
        return pd.NaT
    if pd.isna(ts):
        return pd.NaT
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


def load_schedule_csv(path: str, config: LinkConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """
    Load an exported fixture/results file.

    Timestamps with an offset are converted to UTC; naive timestamps are
    taken to already be UTC.
    """
    fx = pd.read_csv(path)

    fx = fx.rename(columns={
        "Season": "season",
        "Round": "round",
        "Date": "date",
        "Venue": "venue",
        "Home Team": "home_team",
        "Away Team": "away_team",
        "Home Score": "home_score",
        "Away Score": "away_score",
    })

    required = ["date", "season", "round", "home_team", "away_team", "venue"]
    missing = [c for c in required if c not in fx.columns]
    if missing:
        raise ValueError(f"{path} missing required columns: {missing}")

    fx["date"] = pd.to_datetime(fx["date"].map(_to_utc), utc=True)
    bad = fx["date"].isna()
    if bad.any():
        logger.warning("%s: dropped %d rows with unparseable dates", path, int(bad.sum()))
        fx = fx[~bad].copy()

    fx["season"] = fx["season"].astype(int)
    fx["home_team"] = fx["home_team"].astype(str).str.strip()
    fx["away_team"] = fx["away_team"].astype(str).str.strip()

    if "is_final" in fx.columns:
        fx["is_final"] = fx["is_final"].astype(str).str.strip().str.lower().isin(["true", "1", "y", "yes"])
    else:
        fx["is_final"] = fx["round"].astype(str).str.strip().str.contains(FINALS_ROUND_RE, regex=True)

    for col in ["home_score", "away_score"] + WEATHER_COLUMNS:
        if col not in fx.columns:
            fx[col] = np.nan

    fx = fx[SCHEDULE_COLUMNS + WEATHER_COLUMNS].reset_index(drop=True)
    return normalize_teams(fx, config.team_map)
