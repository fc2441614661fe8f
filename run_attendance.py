# run_attendance.py
import argparse
import logging
import os
import sys
from typing import List, Optional

from afl_config import ATTENDANCE_URL, DEFAULT_CONFIG
from afl_errors import FetchError
from attendance_features import (
    build_feature_frame,
    filter_matches,
    load_holidays_csv,
    make_feature_list,
)
from attendance_model import MODEL_KINDS, compare_models, time_aware_split
from fetch_schedule import fetch_schedule, load_schedule_csv
from record_linker import link_records, report_unmatched
from scrape_afl_crowds import fetch_attendance

logger = logging.getLogger("run_attendance")

# ====== CONFIG DEFAULTS ======
FIRST_SEASON = 2012
LAST_SEASON = 2023
EXCLUDE_SEASONS = [2020, 2021]   # COVID seasons: capped or empty grounds
TEST_SEASONS = [2023]
OUT_DIR = "outputs"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Link AFL schedule and crowd records, then model attendance.")
    ap.add_argument("--first_season", type=int, default=FIRST_SEASON)
    ap.add_argument("--last_season", type=int, default=LAST_SEASON)
    ap.add_argument("--schedule_csv", default=None,
                    help="Use an exported fixture file instead of the Squiggle API")
    ap.add_argument("--attendance_url", default=ATTENDANCE_URL)
    ap.add_argument("--holidays", default=None, help="Public holiday CSV (date, state, name)")

    ap.add_argument("--exclude_seasons", type=int, nargs="*", default=EXCLUDE_SEASONS)
    ap.add_argument("--include_finals", action="store_true")
    ap.add_argument("--test_seasons", type=int, nargs="+", default=TEST_SEASONS)
    ap.add_argument("--form_window", type=int, default=None,
                    help="Rolling window for team form (default: whole season to date)")

    ap.add_argument("--models", nargs="+", choices=MODEL_KINDS, default=MODEL_KINDS)
    ap.add_argument("--tune", action="store_true", help="Grid-search each model")
    ap.add_argument("--link_only", action="store_true", help="Stop after linking")

    ap.add_argument("--out_dir", default=OUT_DIR)
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def run(args: argparse.Namespace) -> None:
    os.makedirs(args.out_dir, exist_ok=True)
    seasons: List[int] = list(range(args.first_season, args.last_season + 1))

    # 1) Sources (either failing aborts the run)
    crowds = fetch_attendance(args.attendance_url)
    if args.schedule_csv:
        schedule = load_schedule_csv(args.schedule_csv, DEFAULT_CONFIG)
        schedule = schedule[schedule["season"].isin(seasons)].reset_index(drop=True)
    else:
        schedule = fetch_schedule(seasons, DEFAULT_CONFIG)
    logger.info("Schedule records: %d, attendance records: %d", len(schedule), len(crowds))

    # 2) Link + report
    result = link_records(schedule, crowds, DEFAULT_CONFIG)
    logger.info("Link summary: %s", result.summary())
    unmatched = report_unmatched(result)

    linked_path = os.path.join(args.out_dir, "afl_crowds_linked.csv")
    result.matched.to_csv(linked_path, index=False)
    logger.info("Saved: %s", os.path.abspath(linked_path))
    if len(unmatched):
        un_path = os.path.join(args.out_dir, "afl_crowds_unmatched.csv")
        unmatched.to_csv(un_path, index=False)
        logger.info("Saved: %s", os.path.abspath(un_path))

    if args.link_only:
        return

    # 3) Features (form needs every game, so filter afterwards)
    holidays = load_holidays_csv(args.holidays) if args.holidays else None
    feat = build_feature_frame(result.matched, holidays=holidays, config=DEFAULT_CONFIG,
                               form_window=args.form_window)
    feat = filter_matches(feat, seasons=seasons, exclude_seasons=args.exclude_seasons,
                          include_finals=args.include_finals)
    numeric, categorical = make_feature_list(feat)

    # 4) Models
    train, test = time_aware_split(feat, args.test_seasons)
    table = compare_models(train, test, numeric, categorical, kinds=args.models, tune=args.tune)

    out_path = os.path.join(args.out_dir, "afl_crowd_model_comparison.csv")
    table.to_csv(out_path, index=False)
    logger.info("Saved: %s", os.path.abspath(out_path))
    logger.info("\n%s", table.drop(columns=["params"]).to_string(index=False))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        run(args)
    except FetchError as e:
        logger.error("Aborting: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
