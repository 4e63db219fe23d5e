from __future__ import annotations

import numpy as np
import pandas as pd

from global_temps.errors import InputError, require_columns


MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# last_Dec=0, Jan=1 ... Dec=12, next_Jan=13
SEASONAL_LEVELS = ("last_Dec",) + MONTH_ABBR + ("next_Jan",)
# Jan=1 ... Dec=12, next_Jan=13
SPIRAL_LEVELS = MONTH_ABBR + ("next_Jan",)


def check_months(months: pd.Series) -> None:
    bad = ~months.between(1, 12) | (months % 1 != 0)
    if bad.any():
        raise InputError(f"month outside 1-12: {sorted(months[bad].unique().tolist())}")


def _monthly(df: pd.DataFrame) -> pd.DataFrame:
    require_columns(df, ["year", "month", "monthly_anomaly"])
    check_months(df["month"])
    out = df[["year", "month", "monthly_anomaly"]].copy()
    out["month"] = [MONTH_ABBR[int(m) - 1] for m in out["month"]]
    return out


def _previous_december(monthly: pd.DataFrame) -> pd.DataFrame:
    dec = monthly[monthly["month"] == "Dec"]
    return dec.assign(year=dec["year"] + 1, month="last_Dec")


def _following_january(monthly: pd.DataFrame) -> pd.DataFrame:
    jan = monthly[monthly["month"] == "Jan"]
    return jan.assign(year=jan["year"] - 1, month="next_Jan")


def wrap_seasonal(df: pd.DataFrame) -> pd.DataFrame:
    """Month table with each year's neighbours wrapped around it.

    Every December is copied into the following year as ``last_Dec`` and
    every January into the preceding year as ``next_Jan``, so a year drawn
    over month_number 0..13 joins up with its neighbours at both edges.
    A year without a December (or January) simply gets no wrap row there.
    ``is_current_year`` flags the most recent observed year.
    """
    monthly = _monthly(df)
    wrapped = pd.concat(
        [_previous_december(monthly), monthly, _following_january(monthly)],
        ignore_index=True,
    )
    order = {label: i for i, label in enumerate(SEASONAL_LEVELS)}
    wrapped["month_number"] = wrapped["month"].map(order).astype(int)
    latest = monthly["year"].max() if len(monthly) else None
    wrapped["is_current_year"] = wrapped["year"] == latest
    return (
        wrapped.sort_values(["year", "month_number"], kind="mergesort")
               .reset_index(drop=True)
    )


def animation_frames(df: pd.DataFrame) -> pd.DataFrame:
    """Rows for the spiral animation, numbered in drawing order.

    Each year gets the following January appended as ``next_Jan`` (13) so
    its trace closes onto the next year's. The copy of the very first
    January lands before the observed range and is dropped.
    """
    monthly = _monthly(df)
    frames = pd.concat([monthly, _following_january(monthly)], ignore_index=True)
    order = {label: i + 1 for i, label in enumerate(SPIRAL_LEVELS)}
    frames["month_number"] = frames["month"].map(order).astype(int)
    if len(monthly):
        frames = frames[frames["year"] >= monthly["year"].min()]
    frames = frames.sort_values(["year", "month_number"], kind="mergesort").reset_index(drop=True)
    frames["step_number"] = np.arange(1, len(frames) + 1)
    return frames
