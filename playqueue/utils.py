"""Small formatting helpers shared by the CLI and the web layer."""


def fmt_time(seconds: float) -> str:
    h, rem = divmod(int(max(0, seconds)), 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def fmt_proportion(proportion: float) -> str:
    return f"{round(max(0.0, min(1.0, proportion)) * 100)}%"
