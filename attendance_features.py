# attendance_features.py
import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from afl_config import DEFAULT_CONFIG, LinkConfig, venue_to_state, venue_timezone

logger = logging.getLogger(__name__)

NIGHT_GAME_HOUR = 17
NATIONAL = "ALL"


# =========================
# SEASON / ROUND FILTER
# =========================
def filter_matches(
    df: pd.DataFrame,
    seasons: Optional[Iterable[int]] = None,
    exclude_seasons: Iterable[int] = (),
    include_finals: bool = False,
) -> pd.DataFrame:
    """
    Keep the matches used for modelling.

    seasons: keep only these (None keeps all).
    exclude_seasons: drop these, e.g. (2020, 2021) for the COVID seasons
        with shortened games and capped or empty grounds.
    include_finals: finals crowds follow different rules (neutral
        allocation, sell-outs), so they are dropped unless asked for.
    """
    d = df.copy()
    season = _season(d)

    keep = pd.Series(True, index=d.index)
    if seasons is not None:
        keep &= season.isin(list(seasons))
    excl = list(exclude_seasons)
    if excl:
        keep &= ~season.isin(excl)
    if not include_finals and "is_final" in d.columns:
        keep &= ~d["is_final"].fillna(False).astype(bool)

    out = d[keep].reset_index(drop=True)
    logger.info("filter_matches: kept %d of %d matches", len(out), len(d))
    return out


def _season(d: pd.DataFrame) -> pd.Series:
    if "season" in d.columns:
        return d["season"].astype(int)
    return pd.to_datetime(d["match_date"]).dt.year


# =========================
# TEAM FORM
# =========================
def _points(d: pd.DataFrame, side: str) -> pd.Series:
    col = f"{side}_score"
    pts = pd.to_numeric(d[col], errors="coerce") if col in d.columns else pd.Series(np.nan, index=d.index)
    att_col = f"att_{side}_score"
    if att_col in d.columns:
        pts = pts.fillna(pd.to_numeric(d[att_col], errors="coerce"))
    return pts.astype(float)


def add_team_form(df: pd.DataFrame, window: Optional[int] = None) -> pd.DataFrame:
    """
    Pre-match win ratio of each team within the season (draw = half a win).

    Only games strictly before the current one count, so the first game of
    a season has NaN form. With window set, only the last `window` games
    count.
    """
    d = df.copy().reset_index(drop=True)
    d["_row"] = np.arange(len(d))

    hs = _points(d, "home")
    aw = _points(d, "away")
    home_res = pd.Series(np.select([hs > aw, hs == aw], [1.0, 0.5], default=0.0), index=d.index)
    home_res[hs.isna() | aw.isna()] = np.nan
    away_res = 1.0 - home_res

    order_col = "date" if "date" in d.columns else "match_date"
    season = _season(d)
    long = pd.concat([
        pd.DataFrame({"_row": d["_row"], "side": "home", "season": season,
                      "when": d[order_col], "team": d["home_team"], "result": home_res}),
        pd.DataFrame({"_row": d["_row"], "side": "away", "season": season,
                      "when": d[order_col], "team": d["away_team"], "result": away_res}),
    ], ignore_index=True).sort_values(["when", "_row"])

    g = long.groupby(["season", "team"])["result"]
    if window:
        long["form"] = g.transform(lambda x: x.shift(1).rolling(window, min_periods=1).mean())
    else:
        long["form"] = g.transform(lambda x: x.shift(1).expanding().mean())

    for side in ["home", "away"]:
        f = long[long["side"] == side].set_index("_row")["form"]
        d[f"{side}_form"] = f.reindex(d["_row"]).values

    d["form_diff"] = d["home_form"] - d["away_form"]
    d["form_sum"] = d["home_form"] + d["away_form"]
    return d.drop(columns=["_row"])


# =========================
# PUBLIC HOLIDAYS
# =========================
def load_holidays_csv(path: str) -> pd.DataFrame:
    """
    Load a public holiday calendar with columns date, state, name.

    The data.gov.au export (Date as YYYYMMDD, Holiday Name, Jurisdiction)
    is accepted as-is. Use state 'ALL' for national holidays.
    """
    h = pd.read_csv(path, dtype=str)
    h.columns = [c.strip().lower() for c in h.columns]
    h = h.rename(columns={"holiday name": "name", "jurisdiction": "state"})
    for col in ["date", "state", "name"]:
        if col not in h.columns:
            raise ValueError(f"{path} missing required column: {col}")

    raw = h["date"].astype(str).str.strip()
    if raw.str.fullmatch(r"\d{8}").all():
        h["date"] = pd.to_datetime(raw, format="%Y%m%d")
    else:
        h["date"] = pd.to_datetime(raw, dayfirst=True)
    h["state"] = h["state"].astype(str).str.strip().str.upper()
    return h[["date", "state", "name"]]


def add_holiday_features(
    df: pd.DataFrame,
    holidays: pd.DataFrame,
    config: LinkConfig = DEFAULT_CONFIG,
) -> pd.DataFrame:
    """
    Flag matches on a public holiday in the venue's state, or a national one.

    is_holiday_eve marks the day before a holiday (long-weekend Sundays).
    """
    d = df.copy()
    if "venue_state" not in d.columns:
        d["venue_state"] = d["venue"].apply(lambda v: venue_to_state(v, config))

    h = holidays.copy()
    h["date"] = pd.to_datetime(h["date"]).dt.normalize()
    h["state"] = h["state"].astype(str).str.strip().str.upper()

    by_state = {}
    national = {}
    for r in h.itertuples(index=False):
        if r.state == NATIONAL:
            national.setdefault(r.date, r.name)
        else:
            by_state.setdefault((r.date, r.state), r.name)

    def lookup(date, state):
        name = by_state.get((date, state))
        return name if name is not None else national.get(date)

    dates = pd.to_datetime(d["match_date"]).dt.normalize()
    next_day = dates + pd.Timedelta(days=1)

    d["holiday_name"] = [lookup(dt, st) for dt, st in zip(dates, d["venue_state"])]
    d["is_public_holiday"] = d["holiday_name"].notna().astype(int)
    d["is_holiday_eve"] = [int(lookup(dt, st) is not None) for dt, st in zip(next_day, d["venue_state"])]

    logger.info("Holiday features: %d matches on a public holiday", int(d["is_public_holiday"].sum()))
    return d


# =========================
# TRAVEL
# =========================
def add_travel_features(df: pd.DataFrame, config: LinkConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    d = df.copy()
    d["venue_state"] = d["venue"].apply(lambda v: venue_to_state(v, config))
    d["home_state"] = d["home_team"].map(lambda t: config.team_states.get(t, np.nan))
    d["away_state"] = d["away_team"].map(lambda t: config.team_states.get(t, np.nan))

    known = d["venue_state"].notna()
    d["home_interstate"] = (known & d["home_state"].notna() & (d["home_state"] != d["venue_state"])).astype(int)
    d["away_interstate"] = (known & d["away_state"].notna() & (d["away_state"] != d["venue_state"])).astype(int)

    d["neutral_venue"] = (
        known &
        d["home_state"].notna() &
        d["away_state"].notna() &
        (d["venue_state"] != d["home_state"]) &
        (d["venue_state"] != d["away_state"])
    ).astype(int)

    d["both_interstate"] = ((d["home_interstate"] == 1) & (d["away_interstate"] == 1)).astype(int)
    d["same_state_derby"] = (
        d["home_state"].notna() & (d["home_state"] == d["away_state"])
    ).astype(int)
    return d


# =========================
# KICKOFF
# =========================
def add_kickoff_features(df: pd.DataFrame, config: LinkConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    d = df.copy()
    ts = pd.to_datetime(d["date"])
    if not isinstance(ts.dtype, pd.DatetimeTZDtype):
        ts = ts.dt.tz_localize("UTC")

    tzs = d["venue"].map(lambda v: venue_timezone(v, config))
    local = [t.tz_convert(z) for t, z in zip(ts, tzs)]

    d["day_of_week"] = [t.day_name() for t in local]
    d["month"] = [t.month for t in local]
    d["kickoff_hour"] = [t.hour + t.minute / 60.0 for t in local]
    d["is_night"] = (d["kickoff_hour"] >= NIGHT_GAME_HOUR).astype(int)
    d["is_weekend"] = d["day_of_week"].isin(["Saturday", "Sunday"]).astype(int)
    return d


# =========================
# PIPELINE
# =========================
NUMERIC_FEATURES = [
    "home_form", "away_form", "form_diff", "form_sum",
    "home_interstate", "away_interstate", "neutral_venue", "both_interstate", "same_state_derby",
    "month", "kickoff_hour", "is_night", "is_weekend",
]
HOLIDAY_FEATURES = ["is_public_holiday", "is_holiday_eve"]
WEATHER_FEATURES = ["temperature"]
CATEGORICAL_FEATURES = ["home_team", "away_team", "venue", "day_of_week"]


def build_feature_frame(
    linked: pd.DataFrame,
    holidays: Optional[pd.DataFrame] = None,
    config: LinkConfig = DEFAULT_CONFIG,
    form_window: Optional[int] = None,
) -> pd.DataFrame:
    feat = add_team_form(linked, window=form_window)
    feat = add_travel_features(feat, config)
    feat = add_kickoff_features(feat, config)
    if holidays is not None:
        feat = add_holiday_features(feat, holidays, config)
    return feat


def make_feature_list(df: pd.DataFrame) -> Tuple[List[str], List[str]]:
    """(numeric, categorical) feature names available on df."""
    numeric = list(NUMERIC_FEATURES)
    if all(c in df.columns for c in HOLIDAY_FEATURES):
        numeric += HOLIDAY_FEATURES
    for c in WEATHER_FEATURES:
        if c in df.columns and pd.to_numeric(df[c], errors="coerce").notna().any():
            numeric.append(c)

    missing = [c for c in numeric + CATEGORICAL_FEATURES if c not in df.columns]
    if missing:
        raise ValueError(f"Feature frame missing columns: {missing}")
    return numeric, list(CATEGORICAL_FEATURES)
