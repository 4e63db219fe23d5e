from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from matplotlib.colors import Normalize

from global_temps.errors import RenderError
from global_temps.etl import LinearTrend, fit_linear_trend
from global_temps.reshape import MONTH_ABBR


_LOG = logging.getLogger(__name__)

DEG_C = "°C"
REFERENCE_CIRCLES = (1.5, 2.0)
SPIRAL_RLIM = (-2.0, 2.8)

DARK = {"fig": "#555555", "panel": "black", "text": "white"}


def _check_table(df: pd.DataFrame, cols: list[str], what: str) -> None:
    if df is None or len(df) == 0:
        raise RenderError(f"{what}: input table is empty")
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise RenderError(f"{what}: missing columns {missing}")
    for c in cols:
        if not pd.api.types.is_numeric_dtype(df[c]) or pd.api.types.is_bool_dtype(df[c]):
            raise RenderError(f"{what}: column {c!r} is not numeric (dtype={df[c].dtype})")
        if df[c].notna().sum() == 0:
            raise RenderError(f"{what}: column {c!r} has no values")


def _check_out(path: Path, what: str) -> Path:
    path = Path(path)
    if not path.parent.is_dir():
        raise RenderError(f"{what}: output directory does not exist: {path.parent}")
    return path


def _year_span(years: pd.Series) -> str:
    return f"{int(years.min())} - {int(years.max())}"


@dataclass
class Plotter:
    dpi: int = 100
    figsize: tuple[float, float] = (10.0, 5.0)
    fps: int = 10
    cmap: str = "viridis"

    def _save(self, fig, path: Path, **kwargs) -> Path:
        try:
            fig.savefig(path, dpi=self.dpi, **kwargs)
        except OSError as e:
            raise RenderError(f"could not write {path}: {e}") from e
        finally:
            plt.close(fig)
        return path

    def line(self, yearly: pd.DataFrame, path: Path) -> Path:
        _check_table(yearly, ["year", "yearly_avg_anomaly"], "line chart")
        path = _check_out(path, "line chart")
        fig, ax = plt.subplots(figsize=self.figsize)
        ax.plot(yearly["year"], yearly["yearly_avg_anomaly"])
        ax.set_xlabel("Year")
        ax.set_ylabel("Yearly Temperature avg. Anomaly")
        ax.set_title(f"Yearly Temperature Anomalies {_year_span(yearly['year'])}")
        return self._save(fig, path)

    def scatter(self, yearly: pd.DataFrame, path: Path) -> Path:
        _check_table(yearly, ["year", "yearly_avg_anomaly"], "scatter chart")
        path = _check_out(path, "scatter chart")
        fig, ax = plt.subplots(figsize=self.figsize)
        ax.scatter(yearly["year"], yearly["yearly_avg_anomaly"], s=12)
        ax.set_xlabel("Year")
        ax.set_ylabel("Yearly Temperature avg. Anomaly")
        ax.set_title(f"Yearly Temperature Anomalies {_year_span(yearly['year'])}")
        return self._save(fig, path)

    def regression(self, yearly: pd.DataFrame, path: Path, trend: LinearTrend | None = None) -> Path:
        _check_table(yearly, ["year", "yearly_avg_anomaly"], "regression chart")
        path = _check_out(path, "regression chart")
        if trend is None:
            try:
                trend = fit_linear_trend(yearly)
            except ValueError as e:
                raise RenderError(f"regression chart: {e}") from e

        years = yearly["year"].to_numpy(dtype=float)
        values = yearly["yearly_avg_anomaly"].to_numpy(dtype=float)
        fig, ax = plt.subplots(figsize=self.figsize)
        pts = ax.scatter(years, values, c=values, cmap="turbo", s=14)
        xs = np.array([years.min(), years.max()])
        ax.plot(xs, trend.predict(xs), color="tab:blue", linewidth=2,
                label=f"OLS trend ({trend.slope * 10:+.3f} {DEG_C}/decade)")
        cbar = fig.colorbar(pts, ax=ax, orientation="horizontal", pad=0.12, fraction=0.05)
        cbar.set_label("Average Temperature Anomalies")
        for side in ("top", "right"):
            ax.spines[side].set_visible(False)
        for side in ("left", "bottom"):
            ax.spines[side].set_color("lightblue")
            ax.spines[side].set_linewidth(1.5)
        ax.legend(loc="upper left", frameon=False)
        fig.suptitle("Yearly Temperature Anomalies", fontweight="bold")
        ax.set_title(_year_span(yearly["year"]))
        return self._save(fig, path)

    def seasonal(self, wrapped: pd.DataFrame, path: Path) -> Path:
        """One line per year over Jan..Dec, wrap rows keep the edges continuous."""
        _check_table(wrapped, ["year", "month_number", "monthly_anomaly"], "seasonal chart")
        path = _check_out(path, "seasonal chart")

        observed = wrapped[wrapped["month"].isin(MONTH_ABBR)] if "month" in wrapped.columns else wrapped
        norm = Normalize(vmin=observed["year"].min(), vmax=observed["year"].max())
        cmap = plt.get_cmap(self.cmap)
        current = (wrapped["is_current_year"] if "is_current_year" in wrapped.columns
                   else wrapped["year"] == observed["year"].max())

        fig, ax = plt.subplots(figsize=(8, 4.5))
        fig.patch.set_facecolor(DARK["fig"])
        ax.set_facecolor(DARK["panel"])
        ax.axhline(0, color=DARK["text"], linewidth=0.8)

        # 最新年は最後に太線で描く
        for is_current in (False, True):
            for year, g in wrapped[current == is_current].groupby("year", sort=True):
                ax.plot(g["month_number"], g["monthly_anomaly"],
                        color=cmap(norm(year)), linewidth=2.0 if is_current else 0.6)

        latest = wrapped[current & wrapped["month_number"].between(1, 12)].dropna(subset=["monthly_anomaly"])
        if len(latest):
            last = latest.loc[latest["month_number"].idxmax()]
            ax.text(last["month_number"] + 0.15, last["monthly_anomaly"], str(int(last["year"])),
                    color=cmap(norm(last["year"])), fontweight="bold", ha="left", va="center")

        ax.set_xlim(1, 12)
        ax.set_xticks(range(1, 13))
        ax.set_xticklabels(MONTH_ABBR)
        ax.set_ylabel(f"Temperature change since pre-industrial time [{DEG_C}]", color=DARK["text"])
        ax.set_title("Global temperature change by month", color=DARK["text"])
        ax.tick_params(colors=DARK["text"], direction="in", top=True, right=True)
        for spine in ax.spines.values():
            spine.set_color(DARK["text"])

        sm = plt.cm.ScalarMappable(cmap=cmap, norm=norm)
        cbar = fig.colorbar(sm, ax=ax, pad=0.02)
        cbar.ax.tick_params(colors=DARK["text"])
        cbar.outline.set_edgecolor(DARK["text"])
        return self._save(fig, path, facecolor=fig.get_facecolor())

    def spiral(self, frames: pd.DataFrame, path: Path) -> Path:
        """Animated polar spiral, one cumulative frame per year, saved as GIF.

        Angle comes from month_number (Jan at the top, clockwise), radius from
        the anomaly. Red circles mark the 1.5 and 2.0 degC levels.
        """
        _check_table(frames, ["year", "month_number", "monthly_anomaly"], "spiral animation")
        path = _check_out(path, "spiral animation")

        order_cols = ["step_number"] if "step_number" in frames.columns else ["year", "month_number"]
        frames = frames.sort_values(order_cols)
        years = sorted(int(y) for y in frames["year"].unique())
        norm = Normalize(vmin=years[0], vmax=years[-1])
        cmap = plt.get_cmap(self.cmap)

        fig = plt.figure(figsize=(4.2, 4.5))
        fig.patch.set_facecolor(DARK["fig"])
        ax = fig.add_subplot(projection="polar")
        ax.set_facecolor(DARK["panel"])
        ax.set_theta_zero_location("N")
        ax.set_theta_direction(-1)
        ax.set_ylim(*SPIRAL_RLIM)
        ax.set_xticks([])
        ax.set_yticks([])
        ax.grid(False)
        ax.spines["polar"].set_visible(False)
        ax.set_title(f"Global temperature change from {years[0]} to {years[-1]}", color=DARK["text"])

        circle = np.linspace(0, 2 * np.pi, 361)
        for r in REFERENCE_CIRCLES:
            ax.plot(circle, np.full_like(circle, r), color="red", linewidth=1.0)
            ax.text(np.pi, r, f"{r:.1f} {DEG_C}", color="red", ha="center", va="center", fontsize=7,
                    bbox={"facecolor": DARK["panel"], "edgecolor": "none", "pad": 1})
        for i, label in enumerate(MONTH_ABBR):
            theta = float(_theta(i + 1))
            ax.text(theta, 2.55, label, color=DARK["text"], ha="center", va="center", fontsize=8,
                    rotation=-np.degrees(theta), rotation_mode="anchor")

        traces = {}
        for year, g in frames.groupby("year", sort=True):
            (ln,) = ax.plot(_theta(g["month_number"].to_numpy(dtype=float)), g["monthly_anomaly"],
                            color=cmap(norm(year)), linewidth=1.0, visible=False)
            traces[int(year)] = ln
        center = ax.text(0.5, 0.5, "", transform=ax.transAxes, color=DARK["text"],
                         ha="center", va="center", fontsize=16)

        def update(k):
            current = years[k]
            for year, ln in traces.items():
                ln.set_visible(year <= current)
            center.set_text(str(current))
            return [*traces.values(), center]

        anim = FuncAnimation(fig, update, frames=len(years), repeat=False)
        _LOG.info("rendering %d spiral frames -> %s", len(years), path)
        try:
            anim.save(path, writer=PillowWriter(fps=self.fps), dpi=self.dpi,
                      savefig_kwargs={"facecolor": fig.get_facecolor()})
        except OSError as e:
            raise RenderError(f"spiral animation: could not write {path}: {e}") from e
        finally:
            plt.close(fig)
        return path


def _theta(month_number):
    return (np.asarray(month_number, dtype=float) - 1) * 2 * np.pi / 12
