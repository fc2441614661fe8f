import pandas as pd
import pytest
import requests

from afl_config import ATTENDANCE_COLSPECS


def fwf_line(*values) -> str:
    parts = []
    for (start, end), v in zip(ATTENDANCE_COLSPECS, values):
        width = end - start
        parts.append(str(v).ljust(width)[:width])
    return "".join(parts).rstrip()


def fwf_table(rows) -> str:
    header = [
        "Highest crowds at AFL/VFL matches",
        fwf_line("Rank", "Crowd", "Home", "Score", "Away", "Score", "Venue", "Date"),
    ]
    return "\n".join(header + [fwf_line(*r) for r in rows]) + "\n"


@pytest.fixture
def make_fwf():
    return fwf_table


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, payload=None):
        self.text = text
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttp:
    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, url, response=None, **kwargs):
        self.routes[url] = response if response is not None else FakeResponse(**kwargs)

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        resp = self.routes[url]
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()
    monkeypatch.setattr(requests, "get", http.get)
    return http


def _utc(s: str) -> pd.Timestamp:
    return pd.Timestamp(s, tz="UTC")


@pytest.fixture
def schedule_2015() -> pd.DataFrame:
    """A few 2015 games as the schedule feed reports them (UTC kickoffs)."""
    return pd.DataFrame([
        {"date": _utc("2015-04-02 08:20"), "season": 2015, "round": "Round 1", "is_final": False,
         "home_team": "Carlton", "away_team": "Richmond", "venue": "MCG",
         "home_score": 78, "away_score": 105},
        {"date": _utc("2015-04-11 06:40"), "season": 2015, "round": "Round 2", "is_final": False,
         "home_team": "GWS Giants", "away_team": "Sydney Swans", "venue": "Spotless Stadium",
         "home_score": 60, "away_score": 80},
        {"date": _utc("2015-04-18 10:40"), "season": 2015, "round": "Round 3", "is_final": False,
         "home_team": "West Coast Eagles", "away_team": "Geelong Cats", "venue": "Domain Stadium",
         "home_score": 90, "away_score": 70},
        {"date": _utc("2015-10-03 04:30"), "season": 2015, "round": "Grand Final", "is_final": True,
         "home_team": "Hawthorn", "away_team": "West Coast Eagles", "venue": "MCG",
         "home_score": 107, "away_score": 61},
    ])


@pytest.fixture
def attendance_2015() -> pd.DataFrame:
    """The same games from the crowd list. The grand final lists West Coast first."""
    return pd.DataFrame([
        {"rank": 10, "crowd": 98633, "home_team": "West Coast", "home_score": 61,
         "away_team": "Hawthorn", "away_score": 107, "venue": "M.C.G.", "date": pd.Timestamp("2015-10-03")},
        {"rank": 200, "crowd": 85625, "home_team": "Carlton", "home_score": 78,
         "away_team": "Richmond", "away_score": 105, "venue": "M.C.G.", "date": pd.Timestamp("2015-04-02")},
        {"rank": 900, "crowd": 19204, "home_team": "GW Sydney", "home_score": 60,
         "away_team": "Sydney", "away_score": 80, "venue": "Sydney Showground", "date": pd.Timestamp("2015-04-11")},
        {"rank": 700, "crowd": 36004, "home_team": "West Coast", "home_score": 90,
         "away_team": "Geelong", "away_score": 70, "venue": "Subiaco", "date": pd.Timestamp("2015-04-18")},
    ])
