import time
from datetime import datetime, timezone
from croniter import croniter

from cronrelay.cron.quartz import parse_quartz

def _first_after(expr: str, base: float) -> int:
    it = croniter(expr, datetime.fromtimestamp(base, tz=timezone.utc))
    return int(it.get_next(float))

def next_from_cron(expr: str, base: int | None = None) -> int | None:
    """
    Next fire time (epoch seconds, UTC) of an engine-native expression after base.
    None once the year field rules out any further fire.
    """
    if base is None:
        base = int(time.time())
    cron = parse_quartz(expr)
    rendered = cron.to_croniter()
    nxt = _first_after(rendered, base)
    if cron.years is None:
        return nxt
    while True:
        year = datetime.fromtimestamp(nxt, tz=timezone.utc).year
        if year in cron.years:
            return nxt
        later = [y for y in cron.years if y > year]
        if not later:
            return None
        jump = datetime(min(later), 1, 1, tzinfo=timezone.utc).timestamp() - 1
        nxt = _first_after(rendered, jump)
