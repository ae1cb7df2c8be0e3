from .detection_service import (
    create_detection,
    transition_detection,
    list_detections,
    detection_stats,
    record_lgu_response,
    request_more_info,
)
from .message_service import send_message

__all__ = [
    'create_detection',
    'transition_detection',
    'list_detections',
    'detection_stats',
    'record_lgu_response',
    'request_more_info',
    'send_message',
]
