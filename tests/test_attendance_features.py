import numpy as np
import pandas as pd
import pytest

from attendance_features import (
    CATEGORICAL_FEATURES,
    HOLIDAY_FEATURES,
    add_holiday_features,
    add_kickoff_features,
    add_team_form,
    add_travel_features,
    build_feature_frame,
    filter_matches,
    load_holidays_csv,
    make_feature_list,
)
from record_linker import link_records


def _game(date, season, home, away, hs, as_, venue="MCG", **kw):
    row = {"date": pd.Timestamp(date, tz="UTC"), "season": season, "home_team": home,
           "away_team": away, "home_score": hs, "away_score": as_, "venue": venue}
    row.update(kw)
    return row


@pytest.fixture
def games():
    return pd.DataFrame([
        _game("2015-04-01 09:00", 2015, "Carlton", "Richmond", 100, 50),
        _game("2015-04-08 09:00", 2015, "Richmond", "Essendon", 60, 60),
        _game("2015-04-15 09:00", 2015, "Essendon", "Carlton", 80, 70),
        _game("2015-04-22 09:00", 2015, "Carlton", "Richmond", 90, 40),
        _game("2016-04-01 09:00", 2016, "Carlton", "Richmond", 50, 60),
    ])


@pytest.fixture
def linked(schedule_2015, attendance_2015):
    return link_records(schedule_2015, attendance_2015).matched


# ----------------------------
# filter_matches
# ----------------------------
def test_filter_matches_defaults_drop_finals(linked):
    out = filter_matches(linked)
    assert len(out) == 3
    assert "Grand Final" not in set(out["round"])


def test_filter_matches_seasons_and_exclusions(games):
    assert filter_matches(games, seasons=[2016])["season"].tolist() == [2016]
    assert set(filter_matches(games, exclude_seasons=[2016])["season"]) == {2015}
    assert len(filter_matches(games, seasons=[2015, 2016], exclude_seasons=[2015])) == 1


def test_filter_matches_include_finals(linked):
    assert len(filter_matches(linked, include_finals=True)) == 4


def test_filter_matches_without_season_column(linked):
    out = filter_matches(linked.drop(columns=["season"]), exclude_seasons=[2015], include_finals=True)
    assert out.empty


# ----------------------------
# team form
# ----------------------------
def test_team_form_uses_prior_games_only(games):
    out = add_team_form(games)

    np.testing.assert_array_equal(out["home_form"].values, [np.nan, 0.0, 0.5, 0.5, np.nan])
    np.testing.assert_array_equal(out["away_form"].values, [np.nan, np.nan, 1.0, 0.25, np.nan])
    assert out["form_diff"].iloc[3] == pytest.approx(0.25)
    assert out["form_sum"].iloc[3] == pytest.approx(0.75)


def test_team_form_rolling_window(games):
    out = add_team_form(games, window=1)
    assert out["home_form"].iloc[3] == 0.0
    assert out["away_form"].iloc[3] == 0.5


def test_team_form_ignores_row_order(games):
    shuffled = games.iloc[[3, 0, 4, 2, 1]].reset_index(drop=True)
    out = add_team_form(shuffled)
    assert out["home_form"].iloc[0] == 0.5
    assert out["away_form"].iloc[0] == 0.25


def test_team_form_falls_back_to_attendance_scores(games):
    g = games.copy()
    g["att_home_score"] = g["home_score"]
    g["att_away_score"] = g["away_score"]
    g.loc[0, ["home_score", "away_score"]] = np.nan
    out = add_team_form(g)
    assert out["away_form"].iloc[2] == 1.0


# ----------------------------
# travel
# ----------------------------
def test_travel_features():
    df = pd.DataFrame({
        "home_team": ["West Coast Eagles", "GWS Giants", "Port Adelaide", "Carlton"],
        "away_team": ["Geelong Cats", "Sydney Swans", "Gold Coast Suns", "Fitzroy"],
        "venue": ["Domain Stadium", "Spotless Stadium", "Jiangwan Stadium", "Somewhere Oval"],
    })
    out = add_travel_features(df)

    assert out["venue_state"].iloc[:3].tolist() == ["WA", "NSW", "CHN"]
    assert pd.isna(out["venue_state"].iloc[3])
    assert out["home_interstate"].tolist() == [0, 0, 1, 0]
    assert out["away_interstate"].tolist() == [1, 0, 1, 0]
    assert out["neutral_venue"].tolist() == [0, 0, 1, 0]
    assert out["both_interstate"].tolist() == [0, 0, 1, 0]
    assert out["same_state_derby"].tolist() == [0, 1, 0, 0]


# ----------------------------
# kickoff
# ----------------------------
def test_kickoff_features_use_local_time(linked):
    out = add_kickoff_features(linked)
    carlton = out[out["home_team"] == "Carlton"].iloc[0]
    gf = out[out["round"] == "Grand Final"].iloc[0]

    assert carlton["day_of_week"] == "Thursday"
    assert carlton["kickoff_hour"] == pytest.approx(19 + 20 / 60)
    assert carlton["is_night"] == 1
    assert carlton["is_weekend"] == 0
    assert gf["day_of_week"] == "Saturday"
    assert gf["is_night"] == 0
    assert gf["is_weekend"] == 1
    assert gf["month"] == 10


# ----------------------------
# holidays
# ----------------------------
@pytest.fixture
def holidays():
    return pd.DataFrame({
        "date": pd.to_datetime(["2015-04-03", "2015-04-06", "2015-10-02", "2015-04-25"]),
        "state": ["ALL", "ALL", "VIC", "ALL"],
        "name": ["Good Friday", "Easter Monday", "Friday before the AFL Grand Final", "Anzac Day"],
    })


def test_holiday_features(holidays):
    df = pd.DataFrame({
        "match_date": pd.to_datetime(["2015-04-06", "2015-10-02", "2015-10-02", "2015-04-05", "2015-05-02"]),
        "venue": ["MCG", "MCG", "Optus Stadium", "Adelaide Oval", "Gabba"],
    })
    out = add_holiday_features(df, holidays)

    assert out["is_public_holiday"].tolist() == [1, 1, 0, 0, 0]
    assert out["holiday_name"].iloc[0] == "Easter Monday"
    assert out["holiday_name"].iloc[1] == "Friday before the AFL Grand Final"
    assert out["is_holiday_eve"].tolist() == [0, 0, 0, 1, 0]


def test_load_holidays_csv_data_gov_format(tmp_path):
    path = tmp_path / "holidays.csv"
    path.write_text(
        "Date,Holiday Name,Information,More Information,Jurisdiction\n"
        "20150406,Easter Monday,Easter,,vic\n"
        "20151002,Friday before the AFL Grand Final,,,vic\n"
    )
    h = load_holidays_csv(str(path))
    assert h.columns.tolist() == ["date", "state", "name"]
    assert h["date"].tolist() == [pd.Timestamp("2015-04-06"), pd.Timestamp("2015-10-02")]
    assert h["state"].tolist() == ["VIC", "VIC"]


def test_load_holidays_csv_requires_columns(tmp_path):
    path = tmp_path / "holidays.csv"
    path.write_text("date,name\n2015-04-06,Easter Monday\n")
    with pytest.raises(ValueError, match="state"):
        load_holidays_csv(str(path))


# ----------------------------
# pipeline
# ----------------------------
def test_build_feature_frame_and_feature_list(linked, holidays):
    feat = build_feature_frame(linked, holidays=holidays)
    numeric, categorical = make_feature_list(feat)

    assert categorical == CATEGORICAL_FEATURES
    for c in HOLIDAY_FEATURES + ["home_form", "away_interstate", "is_night"]:
        assert c in numeric
    assert "temperature" not in numeric
    assert len(feat) == len(linked)


def test_feature_list_without_holidays(linked):
    numeric, _ = make_feature_list(build_feature_frame(linked))
    assert not set(HOLIDAY_FEATURES) & set(numeric)


def test_feature_list_includes_weather_when_present(linked):
    feat = build_feature_frame(linked)
    feat["temperature"] = [18.0, 16.5, 12.0, 21.0]
    numeric, _ = make_feature_list(feat)
    assert "temperature" in numeric


def test_feature_list_rejects_incomplete_frame(linked):
    with pytest.raises(ValueError, match="home_form"):
        make_feature_list(linked)
