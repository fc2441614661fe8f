# afl_config.py
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np
import pandas as pd


# =========================
# SOURCES
# =========================
AFL_TABLES_ROOT = "https://afltables.com/afl/"
ATTENDANCE_URL = f"{AFL_TABLES_ROOT}stats/biglists/bg10.txt"
SQUIGGLE_API = "https://api.squiggle.com.au/"

# Squiggle asks for a descriptive agent with contact details.
HEADERS = {"User-Agent": "afl-crowds/0.1 (attendance analysis; github.com/afl-crowds)"}
HTTP_TIMEOUT = 30

# Fixed-width layout of the crowd list:
# rank | crowd | home team | home score | away team | away score | venue | date
ATTENDANCE_COLUMNS = [
    "rank", "crowd", "home_team", "home_score",
    "away_team", "away_score", "venue", "date",
]
ATTENDANCE_COLSPECS = [
    (0, 6), (6, 15), (15, 35), (35, 47),
    (47, 67), (67, 79), (79, 101), (101, 113),
]
ATTENDANCE_HEADER_ROWS = 2
ATTENDANCE_DATE_FORMAT = "%d-%b-%Y"


# =========================
# TEAM NAMES
# =========================
# Attendance source (AFL Tables) and Squiggle names -> schedule names.
# No value is also a key, so normalising twice is a no-op.
TEAM_NAME_MAP = MappingProxyType({
    "Adelaide": "Adelaide Crows",
    "Brisbane": "Brisbane Lions",
    "Geelong": "Geelong Cats",
    "Gold Coast": "Gold Coast Suns",
    "GW Sydney": "GWS Giants",
    "GWS": "GWS Giants",
    "Greater Western Sydney": "GWS Giants",
    "Kangaroos": "North Melbourne",
    "St. Kilda": "St Kilda",
    "Sydney": "Sydney Swans",
    "West Coast": "West Coast Eagles",
})

TEAM_STATE_MAP = MappingProxyType({
    "Adelaide Crows": "SA",
    "Brisbane Lions": "QLD",
    "Carlton": "VIC",
    "Collingwood": "VIC",
    "Essendon": "VIC",
    "Fremantle": "WA",
    "Geelong Cats": "VIC",
    "Gold Coast Suns": "QLD",
    "GWS Giants": "NSW",
    "Hawthorn": "VIC",
    "Melbourne": "VIC",
    "North Melbourne": "VIC",
    "Port Adelaide": "SA",
    "Richmond": "VIC",
    "St Kilda": "VIC",
    "Sydney Swans": "NSW",
    "West Coast Eagles": "WA",
    "Western Bulldogs": "VIC",
})


# =========================
# VENUES
# =========================
# Both naming conventions (sponsor names from the schedule feed, historical
# names from AFL Tables / Squiggle).
VENUE_STATE_MAP = MappingProxyType({
    # VIC
    "MCG": "VIC",
    "M.C.G.": "VIC",
    "Marvel Stadium": "VIC",
    "Etihad Stadium": "VIC",
    "Docklands": "VIC",
    "GMHBA Stadium": "VIC",
    "Simonds Stadium": "VIC",
    "Kardinia Park": "VIC",
    "Mars Stadium": "VIC",
    "Eureka Stadium": "VIC",
    "Waverley Park": "VIC",
    "Princes Park": "VIC",
    # NSW/ACT
    "SCG": "NSW",
    "S.C.G.": "NSW",
    "Sydney Showground": "NSW",
    "Spotless Stadium": "NSW",
    "GIANTS Stadium": "NSW",
    "ENGIE Stadium": "NSW",
    "Accor Stadium": "NSW",
    "ANZ Stadium": "NSW",
    "Stadium Australia": "NSW",
    "Manuka Oval": "ACT",
    "UNSW Canberra Oval": "ACT",
    # QLD
    "Gabba": "QLD",
    "Metricon Stadium": "QLD",
    "People First Stadium": "QLD",
    "Heritage Bank Stadium": "QLD",
    "Carrara": "QLD",
    "Cazaly's Stadium": "QLD",
    "Riverway Stadium": "QLD",
    # SA
    "Adelaide Oval": "SA",
    "Football Park": "SA",
    "Norwood Oval": "SA",
    "Adelaide Hills": "SA",
    "Barossa Park": "SA",
    "Hands Oval": "SA",
    # WA
    "Optus Stadium": "WA",
    "Perth Stadium": "WA",
    "Domain Stadium": "WA",
    "Subiaco": "WA",
    # TAS
    "Blundstone Arena": "TAS",
    "Bellerive Oval": "TAS",
    "Ninja Stadium": "TAS",
    "UTAS Stadium": "TAS",
    "University of Tasmania Stadium": "TAS",
    "Aurora Stadium": "TAS",
    "York Park": "TAS",
    # NT
    "TIO Stadium": "NT",
    "Marrara Oval": "NT",
    "TIO Traeger Park": "NT",
    "Traeger Park": "NT",
    # overseas
    "Jiangwan Stadium": "CHN",
    "Adelaide Arena at Jiangwan Stadium": "CHN",
    "Westpac Stadium": "NZ",
    "Wellington": "NZ",
})

# Substring fallbacks for sponsor renames not yet in the table.
VENUE_STATE_HINTS = (
    ("mcg", "VIC"), ("marvel", "VIC"), ("docklands", "VIC"), ("gmhba", "VIC"),
    ("scg", "NSW"), ("accor", "NSW"), ("giants", "NSW"), ("engie", "NSW"),
    ("gabba", "QLD"), ("cazaly", "QLD"), ("carrara", "QLD"),
    ("adelaide oval", "SA"), ("norwood", "SA"), ("barossa", "SA"),
    ("optus", "WA"), ("perth", "WA"),
    ("bellerive", "TAS"), ("york park", "TAS"), ("utas", "TAS"), ("ninja", "TAS"),
    ("tio stadium", "NT"), ("traeger", "NT"), ("marrara", "NT"),
    ("jiangwan", "CHN"),
)

STATE_TZ_MAP = MappingProxyType({
    "VIC": "Australia/Melbourne",
    "NSW": "Australia/Sydney",
    "ACT": "Australia/Sydney",
    "QLD": "Australia/Brisbane",
    "SA": "Australia/Adelaide",
    "WA": "Australia/Perth",
    "TAS": "Australia/Hobart",
    "NT": "Australia/Darwin",
    "CHN": "Asia/Shanghai",
    "NZ": "Pacific/Auckland",
})

DEFAULT_TZ = "Australia/Melbourne"


@dataclass(frozen=True)
class LinkConfig:
    """Lookup tables shared by the linker and the feature builders."""

    team_map: Mapping[str, str] = field(default_factory=lambda: TEAM_NAME_MAP)
    team_states: Mapping[str, str] = field(default_factory=lambda: TEAM_STATE_MAP)
    venue_states: Mapping[str, str] = field(default_factory=lambda: VENUE_STATE_MAP)
    state_tz: Mapping[str, str] = field(default_factory=lambda: STATE_TZ_MAP)
    key_sep: str = "_"
    default_tz: str = DEFAULT_TZ


DEFAULT_CONFIG = LinkConfig()


def venue_to_state(venue, config: LinkConfig = DEFAULT_CONFIG) -> Optional[str]:
    if pd.isna(venue):
        return np.nan
    v = re.sub(r"\s+", " ", str(venue).replace("’", "'")).strip()
    if v in config.venue_states:
        return config.venue_states[v]
    lv = v.lower()
    for hint, state in VENUE_STATE_HINTS:
        if hint in lv:
            return state
    return np.nan


def venue_timezone(venue, config: LinkConfig = DEFAULT_CONFIG) -> str:
    state = venue_to_state(venue, config)
    if pd.isna(state):
        return config.default_tz
    return config.state_tz.get(state, config.default_tz)
