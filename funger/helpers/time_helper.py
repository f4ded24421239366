import time
from datetime import datetime
from typing import Optional

import pytz


class TimeHelper:
    """A static helper class for standardized time and date operations."""
    EST = pytz.timezone('US/Eastern')
    UTC = pytz.utc

    @staticmethod
    def get_est_date() -> str:
        return datetime.now(TimeHelper.EST).strftime('%Y-%m-%d')

    @staticmethod
    def get_current_timestamp() -> int:
        """Returns the current Unix timestamp as an integer."""
        return int(time.time())

    @staticmethod
    def to_utc_datetime(timestamp: Optional[int]) -> Optional[datetime]:
        if timestamp is None:
            return None
        return datetime.fromtimestamp(timestamp, tz=TimeHelper.UTC)

    @staticmethod
    def format_duration(seconds: Optional[int]) -> str:
        if not seconds or seconds < 0:
            return "0:00"
        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{secs:02d}"
        return f"{minutes}:{secs:02d}"
