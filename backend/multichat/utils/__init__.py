from multichat.utils.ids import new_media_id, new_message_id, new_object_id
from multichat.utils.time import now_ms, utc_now_iso

__all__ = [
    "new_media_id",
    "new_message_id",
    "new_object_id",
    "now_ms",
    "utc_now_iso",
]
