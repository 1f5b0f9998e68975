"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types for the provisioner.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.PROVISION_COMPLETED, ...})
    """

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    CONFIG_LOADED = "config_loaded"

    # Provision events
    PROVISION_STARTED = "provision_started"
    PROVISION_REUSED = "provision_reused"
    PROVISION_COMPLETED = "provision_completed"
    PROVISION_FAILED = "provision_failed"
    ALLOCATION_RESET = "allocation_reset"
    IDENTITY_RESOLVED = "identity_resolved"
    ARCHIVE_EXTRACTED = "archive_extracted"

    # Delete events
    VOLUME_RETAINED = "volume_retained"
    VOLUME_ARCHIVED = "volume_archived"
    ARCHIVE_SKIPPED = "archive_skipped"

    # Error events
    UNHANDLED_EXCEPTION = "unhandled_exception"
    PROVISIONER_ERROR = "provisioner_error"
