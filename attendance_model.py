# attendance_model.py
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from sklearn.compose import ColumnTransformer
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LinearRegression, Ridge
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import GridSearchCV, TimeSeriesSplit
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler

logger = logging.getLogger(__name__)

TARGET = "crowd"
RANDOM_STATE = 42

MODEL_KINDS = ["linear", "ridge", "random_forest", "gradient_boosting"]

PARAM_GRIDS: Dict[str, Dict[str, list]] = {
    "linear": {},
    "ridge": {"reg__alpha": [0.1, 1.0, 10.0, 100.0]},
    "random_forest": {
        "reg__n_estimators": [200, 500],
        "reg__max_depth": [None, 10, 20],
        "reg__min_samples_leaf": [1, 5],
    },
    "gradient_boosting": {
        "reg__n_estimators": [200, 500],
        "reg__learning_rate": [0.03, 0.1],
        "reg__max_depth": [2, 3, 4],
    },
}


# =========================
# SPLIT
# =========================
def time_aware_split(df: pd.DataFrame, test_seasons: Iterable[int]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Train on every season before the first test season, test on test_seasons."""
    test_seasons = sorted(int(s) for s in test_seasons)
    if not test_seasons:
        raise ValueError("test_seasons must not be empty")

    season = df["season"].astype(int)
    train = df[season < test_seasons[0]].copy()
    test = df[season.isin(test_seasons)].copy()
    if train.empty or test.empty:
        raise ValueError(
            f"Empty split for test seasons {test_seasons}: "
            f"{len(train)} train rows, {len(test)} test rows"
        )

    logger.info("Time-aware split: %d train rows, %d test rows (test seasons %s)",
                len(train), len(test), test_seasons)
    return train, test


# =========================
# MODELS
# =========================
def _regressor(kind: str):
    if kind == "linear":
        return LinearRegression()
    if kind == "ridge":
        return Ridge(alpha=1.0)
    if kind == "random_forest":
        return RandomForestRegressor(n_estimators=300, min_samples_leaf=2, n_jobs=-1, random_state=RANDOM_STATE)
    if kind == "gradient_boosting":
        return GradientBoostingRegressor(n_estimators=300, learning_rate=0.05, max_depth=3, random_state=RANDOM_STATE)
    raise ValueError(f"Unknown model kind: {kind!r}. Choose from {MODEL_KINDS}")


def make_pipeline(kind: str, numeric: List[str], categorical: List[str]) -> Pipeline:
    pre = ColumnTransformer(transformers=[
        ("num", Pipeline(steps=[
            ("imputer", SimpleImputer(strategy="median")),
            ("scaler", StandardScaler()),
        ]), numeric),
        ("cat", Pipeline(steps=[
            ("imputer", SimpleImputer(strategy="most_frequent")),
            ("onehot", OneHotEncoder(handle_unknown="ignore", sparse_output=False)),
        ]), categorical),
    ])
    return Pipeline(steps=[
        ("pre", pre),
        ("reg", _regressor(kind)),
    ])


def fit_model(
    train_df: pd.DataFrame,
    numeric: List[str],
    categorical: List[str],
    kind: str = "ridge",
) -> Pipeline:
    model = make_pipeline(kind, numeric, categorical)
    model.fit(train_df[numeric + categorical], train_df[TARGET].astype(float))
    return model


def tune_model(
    train_df: pd.DataFrame,
    numeric: List[str],
    categorical: List[str],
    kind: str = "gradient_boosting",
    n_splits: int = 3,
    param_grid: Optional[Dict[str, list]] = None,
) -> Tuple[Pipeline, dict]:
    """
    Grid-search a model with forward-chaining folds.

    Rows are ordered by kickoff so each fold only validates on later games.
    """
    d = train_df.sort_values("date")
    grid = PARAM_GRIDS[kind] if param_grid is None else param_grid
    if not grid:
        return fit_model(d, numeric, categorical, kind), {}

    search = GridSearchCV(
        make_pipeline(kind, numeric, categorical),
        param_grid=grid,
        cv=TimeSeriesSplit(n_splits=n_splits),
        scoring="neg_root_mean_squared_error",
        n_jobs=-1,
    )
    search.fit(d[numeric + categorical], d[TARGET].astype(float))
    logger.info("Tuned %s: best RMSE %.0f with %s", kind, -search.best_score_, search.best_params_)
    return search.best_estimator_, dict(search.best_params_)


def predict_crowd(model: Pipeline, df: pd.DataFrame, numeric: List[str], categorical: List[str]) -> np.ndarray:
    # a crowd can't be negative
    return np.maximum(model.predict(df[numeric + categorical]), 0.0)


# =========================
# EVALUATION
# =========================
def metrics_block(y_true, y_pred, label: str) -> dict:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    return {
        "model": label,
        "n": int(len(y_true)),
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "mae": float(mean_absolute_error(y_true, y_pred)),
        "r2": float(r2_score(y_true, y_pred)),
    }


def compare_models(
    train_df: pd.DataFrame,
    test_df: pd.DataFrame,
    numeric: List[str],
    categorical: List[str],
    kinds: Iterable[str] = MODEL_KINDS,
    tune: bool = False,
) -> pd.DataFrame:
    rows = []
    for kind in kinds:
        if tune:
            model, params = tune_model(train_df, numeric, categorical, kind=kind)
        else:
            model, params = fit_model(train_df, numeric, categorical, kind=kind), {}
        pred = predict_crowd(model, test_df, numeric, categorical)
        row = metrics_block(test_df[TARGET], pred, kind)
        row["params"] = params
        rows.append(row)
        logger.info("%s: RMSE %.0f, MAE %.0f, R2 %.3f", kind, row["rmse"], row["mae"], row["r2"])

    # Baseline: mean crowd of the training seasons.
    base = np.full(len(test_df), float(train_df[TARGET].mean()))
    rows.append({**metrics_block(test_df[TARGET], base, "mean_baseline"), "params": {}})

    return pd.DataFrame(rows).sort_values("rmse").reset_index(drop=True)
