from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
import numpy as np
import pandas as pd
from datetime import datetime as dt

from global_temps.errors import DataParseError, InputError, RenderError, require_columns
from global_temps.reshape import animation_frames, check_months, wrap_seasonal


_LOG = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("year", "month", "monthly_anomaly", "annual_anomaly")

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def clean_names(columns) -> list[str]:
    """Normalize column labels the way janitor's clean_names does.

    "Monthly Anomaly" -> "monthly_anomaly", "Monthly Unc." -> "monthly_unc".
    Duplicate results get a numeric suffix (_2, _3, ...).
    """
    out: list[str] = []
    seen: dict[str, int] = {}
    for col in columns:
        name = _NON_ALNUM.sub("_", str(col).strip().lower()).strip("_")
        if not name:
            name = "x"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        out.append(name)
    return out


@dataclass
class DataLoader:
    sep: str = ","

    def load(self, path: Path) -> pd.DataFrame:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"input file not found: {path}")
        try:
            return pd.read_csv(path, sep=self.sep)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise DataParseError(f"could not parse {path}: {e}") from e


@dataclass
class Cleaner:
    required: tuple[str, ...] = REQUIRED_COLUMNS
    drop_na_cols: list[str] = field(default_factory=lambda: ["annual_anomaly"])

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()
        out.columns = clean_names(out.columns)
        require_columns(out, self.required)
        out = out[list(self.required)].copy()

        # "NaN" 文字列や空欄は欠損扱い、欠損行は型チェック前に落とす
        for col in self.required:
            if col.endswith("anomaly"):
                out[col] = pd.to_numeric(out[col], errors="coerce").astype(float)
        out = out.dropna(subset=self.drop_na_cols)

        for col in ("year", "month"):
            values = pd.to_numeric(out[col], errors="coerce")
            bad = values.isna() | (values % 1 != 0)
            if bad.any():
                raise InputError(f"column {col!r} has non-integer values at rows {list(out.index[bad][:5])}")
            out[col] = values.astype(int)
        check_months(out["month"])

        return out.sort_values(["year", "month"], kind="mergesort").reset_index(drop=True)


def aggregate_yearly(df: pd.DataFrame) -> pd.DataFrame:
    require_columns(df, ["year", "monthly_anomaly"])
    valid = df.dropna(subset=["monthly_anomaly"])
    dropped = sorted(int(y) for y in set(df["year"]) - set(valid["year"]))
    if dropped:
        _LOG.warning("no monthly values for years %s; excluded from yearly averages", dropped)
    grouped = (
        valid.groupby("year")
             .agg(yearly_avg_anomaly=("monthly_anomaly", "mean"))
             .reset_index()
             .sort_values("year")
             .reset_index(drop=True)
    )
    return grouped


@dataclass
class LinearTrend:
    intercept: float
    slope: float

    def predict(self, years) -> np.ndarray:
        return self.intercept + self.slope * np.asarray(years, dtype=float)


def fit_linear_trend(yearly: pd.DataFrame) -> LinearTrend:
    """Ordinary least squares fit of yearly_avg_anomaly = a + b * year."""
    require_columns(yearly, ["year", "yearly_avg_anomaly"])
    d = yearly.dropna(subset=["yearly_avg_anomaly"])
    if d["year"].nunique() < 2:
        raise ValueError("a linear trend needs at least two distinct years")
    slope, intercept = np.polyfit(d["year"].astype(float), d["yearly_avg_anomaly"].astype(float), 1)
    return LinearTrend(intercept=float(intercept), slope=float(slope))


@dataclass
class PipelineTables:
    cleaned: pd.DataFrame
    yearly: pd.DataFrame
    wrapped: pd.DataFrame
    frames: pd.DataFrame


def build_tables(raw: pd.DataFrame, cleaner: Cleaner | None = None) -> PipelineTables:
    cleaned = (cleaner or Cleaner()).clean(raw)
    return PipelineTables(
        cleaned=cleaned,
        yearly=aggregate_yearly(cleaned),
        wrapped=wrap_seasonal(cleaned),
        frames=animation_frames(cleaned),
    )


def main(argv: list[str] | None = None) -> int:
    from global_temps.plots import Plotter

    ap = argparse.ArgumentParser(description="Global earth temperature ETL + charts")
    ap.add_argument("--in", dest="in_path", required=True, type=Path)
    ap.add_argument("--out-dir", dest="out_dir", type=Path, default=Path("artifacts/global_temperature"))
    ap.add_argument("--summary", dest="summary_path", type=Path, default=None,
                    help="年平均テーブルの保存先（省略時は out-dir/yearly_avg_anomaly.csv）")
    ap.add_argument("--sep", default=",", help="区切り文字")
    ap.add_argument("--no-animation", dest="animation", action="store_false", help="スパイラルGIFを作らない")
    ap.add_argument("--fps", type=int, default=10, help="GIFのフレームレート")
    ap.add_argument("--dpi", type=int, default=100)
    ap.add_argument("--report", type=Path, default=None, help="実行レポートを保存する先（.txt推奨）")
    ap.add_argument("--verbose", action="store_true", help="途中経過を表示")
    ap.set_defaults(animation=True)
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    steps = 5 if args.animation else 4
    summary_path = args.summary_path or args.out_dir / "yearly_avg_anomaly.csv"

    try:
        if args.verbose: print(f"[1/{steps}] Load: {args.in_path}")
        raw = DataLoader(sep=args.sep).load(args.in_path)

        if args.verbose: print(f"[2/{steps}] Clean + reshape")
        tables = build_tables(raw)

        if args.verbose: print(f"[3/{steps}] Aggregate -> {summary_path}")
        summary_path.parent.mkdir(parents=True, exist_ok=True)
        tables.yearly.to_csv(summary_path, index=False)

        if args.verbose: print(f"[4/{steps}] Static charts -> {args.out_dir}")
        args.out_dir.mkdir(parents=True, exist_ok=True)
        plotter = Plotter(dpi=args.dpi, fps=args.fps)
        trend = fit_linear_trend(tables.yearly)
        written = [
            plotter.line(tables.yearly, args.out_dir / "yearly_line.png"),
            plotter.scatter(tables.yearly, args.out_dir / "yearly_scatter.png"),
            plotter.regression(tables.yearly, args.out_dir / "yearly_regression.png", trend=trend),
            plotter.seasonal(tables.wrapped, args.out_dir / "seasonal_lines.png"),
        ]

        if args.animation:
            if args.verbose: print(f"[5/{steps}] Spiral animation ({tables.frames['year'].nunique()} frames)")
            written.append(plotter.spiral(tables.frames, args.out_dir / "climate_spiral.gif"))
    except (OSError, ValueError, RenderError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    # ---- 実行サマリー ----
    yearly = tables.yearly
    s = yearly["yearly_avg_anomaly"]
    warmest = yearly.loc[s.idxmax()]
    digest = (
        "=== GLOBAL TEMPERATURE RUN SUMMARY ===\n"
        f"when      : {dt.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"in        : {args.in_path}\n"
        f"summary   : {summary_path}\n"
        f"rows      : raw={len(raw)} -> clean={len(tables.cleaned)} (dropped={len(raw) - len(tables.cleaned)})\n"
        f"years     : {int(yearly['year'].min())}-{int(yearly['year'].max())} ({len(yearly)} years)\n"
        f"yearly    : mean={s.mean():.3f} min={s.min():.3f} max={s.max():.3f} "
        f"(warmest {int(warmest['year'])})\n"
        f"trend     : {trend.slope * 10:+.3f} degC/decade\n"
        "--- artifacts ---\n"
        + "\n".join(str(p) for p in written) + "\n"
    )
    print(digest)

    if args.report is not None:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        with open(args.report, "w", encoding="utf-8") as f:
            f.write(digest)
        print(f"[report] wrote {args.report}")

    print(f"Done: wrote {summary_path} and {len(written)} charts")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
