#%% セル1：パラメータ
from pathlib import Path
IN  = Path("data/raw/Global_Earth_Temperature_Kaggle.csv")
OUT = Path("artifacts/global_temperature")

#%% セル2：パイプラインを関数呼び出しで（引数なしでOK）
from global_temps.etl import DataLoader, build_tables, fit_linear_trend
from global_temps.plots import Plotter

raw = DataLoader().load(IN)
tables = build_tables(raw)
OUT.mkdir(parents=True, exist_ok=True)
tables.yearly.to_csv(OUT / "yearly_avg_anomaly.csv", index=False)

plotter = Plotter()
plotter.regression(tables.yearly, OUT / "yearly_regression.png")
plotter.seasonal(tables.wrapped, OUT / "seasonal_lines.png")

#%% セル3：結果を確認
print(tables.yearly.tail())
print(tables.frames.head(14))
print(fit_linear_trend(tables.yearly))

# %%
