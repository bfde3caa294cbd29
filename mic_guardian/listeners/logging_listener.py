from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.core.types import SessionRecord

logger = get_module_logger("SessionHistory")


def log_session_listener(record: SessionRecord) -> None:
    """Log one summary line per sealed session and one per participant."""
    logger.info(
        "Session %d: %s used the microphone for %.1fs (%s)",
        record.id,
        record.app_name or "unknown",
        record.duration_ms / 1000,
        record.end_reason.value,
    )
    for participant in record.participants:
        logger.info(
            "  %s (%s) - %s",
            participant.display_name,
            participant.client_id,
            participant.classification.value,
        )
