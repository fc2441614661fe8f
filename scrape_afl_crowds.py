# scrape_afl_crowds.py
import logging
import re
from io import StringIO
from typing import List, Optional, Sequence, Tuple

import pandas as pd
import requests
from bs4 import BeautifulSoup

from afl_config import (
    ATTENDANCE_URL,
    ATTENDANCE_COLUMNS,
    ATTENDANCE_COLSPECS,
    ATTENDANCE_HEADER_ROWS,
    ATTENDANCE_DATE_FORMAT,
    HEADERS,
    HTTP_TIMEOUT,
)
from afl_errors import FetchError, ParseError

logger = logging.getLogger(__name__)


# ----------------------------
# Fetch
# ----------------------------
def fetch_text(url: str) -> str:
    """GET a text table. Any network error or non-2xx status is fatal."""
    try:
        r = requests.get(url, headers=HEADERS, timeout=HTTP_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(url, str(e)) from e

    text = r.text
    if "<pre" in text.lower():
        text = extract_preformatted_text(text)
    return text


def extract_preformatted_text(html: str) -> str:
    """AFL Tables serves some lists as HTML wrapping a single <pre> block."""
    soup = BeautifulSoup(html, "html.parser")
    pre = soup.find("pre")
    if pre is None:
        raise ParseError("table", "<no pre block>")
    return pre.get_text()


# ----------------------------
# Field parsers
# ----------------------------
def parse_crowd(value) -> int:
    """'95,000*' -> 95000. Separators and footnote markers are dropped."""
    digits = re.sub(r"\D", "", str(value))
    if not digits:
        raise ParseError("crowd", value)
    return int(digits)


def parse_crowd_date(value) -> pd.Timestamp:
    """Day-month-year, e.g. '28-Sep-2015'."""
    s = str(value).strip()
    try:
        ts = pd.to_datetime(s, format=ATTENDANCE_DATE_FORMAT)
    except (ValueError, TypeError) as e:
        raise ParseError("date", value) from e
    if pd.isna(ts):
        raise ParseError("date", value)
    return ts


def parse_score(value) -> Optional[int]:
    """Parse strings like '12.14.86' and return 86."""
    m = re.search(r"(\d+)\.(\d+)\.(\d+)", str(value).strip())
    return int(m.group(3)) if m else None


def _parse_rank(value) -> Optional[int]:
    # ties are printed as '=12'
    digits = re.sub(r"\D", "", str(value))
    return int(digits) if digits else None


# ----------------------------
# Table parse
# ----------------------------
def parse_attendance_table(
    text: str,
    colspecs: Sequence[Tuple[int, int]] = ATTENDANCE_COLSPECS,
    skiprows: int = ATTENDANCE_HEADER_ROWS,
) -> Tuple[pd.DataFrame, List[ParseError]]:
    """
    Parse the fixed-width crowd list.

    Returns the parsed rows and one ParseError per rejected row. A rejected
    row is left out of the frame rather than given a placeholder value, so
    the caller can see exactly which source lines were lost.
    """
    try:
        raw = pd.read_fwf(
            StringIO(text),
            colspecs=list(colspecs),
            names=ATTENDANCE_COLUMNS,
            header=None,
            skiprows=skiprows,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        raw = pd.DataFrame(columns=ATTENDANCE_COLUMNS)

    rows = []
    errors: List[ParseError] = []
    for i, r in enumerate(raw.itertuples(index=False)):
        if not any(str(v).strip() for v in r):
            continue
        try:
            crowd = parse_crowd(r.crowd)
            date = parse_crowd_date(r.date)
        except ParseError as e:
            errors.append(ParseError(e.field, e.value, row=i))
            continue
        rows.append({
            "rank": _parse_rank(r.rank),
            "crowd": crowd,
            "home_team": str(r.home_team).strip(),
            "home_score": parse_score(r.home_score),
            "away_team": str(r.away_team).strip(),
            "away_score": parse_score(r.away_score),
            "venue": str(r.venue).strip(),
            "date": date,
        })

    out = pd.DataFrame(rows, columns=ATTENDANCE_COLUMNS)
    out["crowd"] = out["crowd"].astype("int64")
    for col in ["rank", "home_score", "away_score"]:
        out[col] = out[col].astype("Int64")
    out["date"] = pd.to_datetime(out["date"])
    return out, errors


def fetch_attendance(url: str = ATTENDANCE_URL) -> pd.DataFrame:
    text = fetch_text(url)
    crowds, errors = parse_attendance_table(text)
    for e in errors:
        logger.warning("Skipped attendance row: %s", e)
    logger.info("Parsed %d attendance rows from %s (%d rejected)", len(crowds), url, len(errors))
    return crowds
