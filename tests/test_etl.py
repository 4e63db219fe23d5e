import logging

import numpy as np
import pandas as pd
import pytest

from global_temps.errors import DataParseError, InputError, MissingColumnsError
from global_temps.etl import Cleaner, DataLoader, aggregate_yearly, build_tables, clean_names, fit_linear_trend


def raw_frame():
    return pd.DataFrame({
        "Year": [1850, 1850, 1850, 1851, 1851, 1852],
        "Month": [1, 2, 12, 1, 2, 1],
        "Monthly Anomaly": [0.1, 0.5, 0.3, 0.2, None, -0.4],
        "Monthly Unc.": [0.3] * 6,
        "Annual Anomaly": [0.25, 0.25, "NaN", 0.1, 0.1, None],
    })


def test_clean_names_like_janitor():
    cols = ["Year", " Monthly Anomaly ", "Monthly Unc.", "Five-Year Anomaly", "year"]
    assert clean_names(cols) == ["year", "monthly_anomaly", "monthly_unc", "five_year_anomaly", "year_2"]


def test_cleaner_drops_missing_annual():
    out = Cleaner().clean(raw_frame())
    assert list(out.columns) == ["year", "month", "monthly_anomaly", "annual_anomaly"]
    assert out["annual_anomaly"].notna().all()
    assert out[["year", "month"]].values.tolist() == [[1850, 1], [1850, 2], [1851, 1], [1851, 2]]


def test_cleaner_does_not_touch_input():
    raw = raw_frame()
    before = raw.copy()
    Cleaner().clean(raw)
    pd.testing.assert_frame_equal(raw, before)


def test_cleaner_missing_columns():
    df = raw_frame().drop(columns=["Annual Anomaly"])
    with pytest.raises(MissingColumnsError) as e:
        Cleaner().clean(df)
    assert e.value.missing == ["annual_anomaly"]


def test_cleaner_rejects_bad_month():
    df = raw_frame()
    df.loc[0, "Month"] = 13
    with pytest.raises(InputError):
        Cleaner().clean(df)


def test_yearly_mean_matches_cleaned_rows():
    cleaned = Cleaner().clean(raw_frame())
    yearly = aggregate_yearly(cleaned)
    assert yearly["year"].tolist() == [1850, 1851]
    for year, avg in zip(yearly["year"], yearly["yearly_avg_anomaly"]):
        expected = cleaned.loc[cleaned["year"] == year, "monthly_anomaly"].mean()
        assert avg == pytest.approx(expected)
    # 1851 の欠損月は平均から除外
    assert yearly.loc[yearly["year"] == 1851, "yearly_avg_anomaly"].iloc[0] == pytest.approx(0.2)


def test_year_without_values_is_absent(caplog):
    df = pd.DataFrame({
        "year": [2000, 2000, 2001],
        "month": [1, 2, 1],
        "monthly_anomaly": [np.nan, np.nan, 0.4],
        "annual_anomaly": [0.1, 0.1, 0.4],
    })
    with caplog.at_level(logging.WARNING):
        yearly = aggregate_yearly(df)
    assert yearly["year"].tolist() == [2001]
    assert "2000" in caplog.text


def test_trend_slope_sign():
    yearly = pd.DataFrame({"year": [2020, 2021, 2022], "yearly_avg_anomaly": [1.0, 1.2, 1.1]})
    trend = fit_linear_trend(yearly)
    assert trend.slope > 0
    assert trend.predict([2021])[0] == pytest.approx(1.1)


def test_trend_needs_two_years():
    with pytest.raises(ValueError):
        fit_linear_trend(pd.DataFrame({"year": [2020], "yearly_avg_anomaly": [1.0]}))


def test_loader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataLoader().load(tmp_path / "nope.csv")


def test_loader_empty_file(tmp_path):
    p = tmp_path / "empty.csv"
    p.write_text("", encoding="utf-8")
    with pytest.raises(DataParseError):
        DataLoader().load(p)


def test_loader_reads_csv(tmp_path):
    p = tmp_path / "temps.csv"
    raw_frame().to_csv(p, index=False)
    df = DataLoader().load(p)
    assert len(df) == 6
    assert "Monthly Anomaly" in df.columns


def test_build_tables_deterministic():
    a = build_tables(raw_frame())
    b = build_tables(raw_frame())
    for name in ("cleaned", "yearly", "wrapped", "frames"):
        assert getattr(a, name).equals(getattr(b, name)), name


def test_blank_trailing_row_is_dropped():
    df = pd.DataFrame({
        "Year": [2000, 2000, None],
        "Month": [1, 2, None],
        "Monthly Anomaly": [0.1, 0.2, None],
        "Annual Anomaly": [0.15, 0.15, None],
    })
    out = Cleaner().clean(df)
    assert out[["year", "month"]].values.tolist() == [[2000, 1], [2000, 2]]
    assert out["year"].dtype.kind == "i"


def test_bad_year_on_kept_row_is_an_error():
    df = pd.DataFrame({
        "year": ["abc", 2000],
        "month": [1, 2],
        "monthly_anomaly": [0.1, 0.2],
        "annual_anomaly": [0.15, 0.15],
    })
    with pytest.raises(InputError, match="year"):
        Cleaner().clean(df)


def test_loader_badly_delimited_file(tmp_path):
    p = tmp_path / "broken.csv"
    p.write_text("Year,Month\n1850,1\n1850,2,0.3,0.1\n", encoding="utf-8")
    with pytest.raises(DataParseError):
        DataLoader().load(p)
