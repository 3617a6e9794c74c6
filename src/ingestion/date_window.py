from __future__ import annotations

import math
from datetime import date, timedelta
from typing import List


def expand_date_window(
    horizon_hours: float,
    today: date,
    *,
    pad_days: int = 2,
    lookback_days: int = 0,
) -> List[date]:
    """
    Date di calendario da interrogare per un orizzonte in ore.

    Il numero di giorni è ceil(horizon/24) + pad_days: il pad assorbe le
    fixture che il provider assegna al giorno adiacente per via del fuso.
    La finestra parte da today - lookback_days, in ordine crescente.
    """
    hours = max(float(horizon_hours), 0.0)
    span = math.ceil(hours / 24) + max(pad_days, 0)
    start = today - timedelta(days=max(lookback_days, 0))
    return [start + timedelta(days=i) for i in range(span)]


def iso_dates(dates: List[date]) -> List[str]:
    return [d.isoformat() for d in dates]


__all__ = ["expand_date_window", "iso_dates"]
