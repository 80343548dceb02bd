from .clock_refresher import ClockRefresher

__all__ = ["ClockRefresher"]
