from live_data.live_data import (
    InvalidationTracker,
    LiveData,
    LiveQuery,
    MutableLiveData,
    await_value,
)

__all__ = [
    "InvalidationTracker",
    "LiveData",
    "LiveQuery",
    "MutableLiveData",
    "await_value",
]
