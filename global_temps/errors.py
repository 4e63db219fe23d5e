from __future__ import annotations


class InputError(ValueError):
    pass


class DataParseError(InputError):
    pass


class MissingColumnsError(InputError):
    def __init__(self, missing: list[str], available: list[str] | None = None) -> None:
        self.missing = list(missing)
        self.available = list(available or [])
        msg = f"missing required columns: {', '.join(self.missing)}"
        if self.available:
            msg += f" (available: {', '.join(map(str, self.available))})"
        super().__init__(msg)


class RenderError(RuntimeError):
    pass


def require_columns(df, cols) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise MissingColumnsError(missing, available=list(df.columns))
