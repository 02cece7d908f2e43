"""
Component logging helpers for JellyScan.

Every component emits through the stdlib logger ``JellyScan.<component>``
so that sinks and formatting stay a deployment concern (see
shared.logging_config). Messages carry a ``[JellyScan <component>]``
prefix for plain-text tailing; keyword arguments are attached as
structured ``extra`` fields for JSON output.

Usage:
    from shared.log import create_logger
    log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")
    log_info("targeted scan resolved", event_id="a", path="/media/x.mkv")
    # -> [JellyScan Engine] targeted scan resolved   (extra: event_id, path)
"""

import logging

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def create_logger(component: str = ""):
    """Create log functions for a component.

    Args:
        component: Component name suffix. If provided, prefix becomes
                   "[JellyScan {component}]", otherwise "[JellyScan]".

    Returns:
        Tuple of (log_trace, log_debug, log_info, log_warn, log_error) functions.
    """
    prefix = f"[JellyScan {component}]" if component else "[JellyScan]"
    logger = logging.getLogger(f"JellyScan.{component}" if component else "JellyScan")

    def _emitter(level):
        def emit(msg, **fields):
            logger.log(level, f"{prefix} {msg}", extra=fields or None)
        return emit

    return (
        _emitter(TRACE),
        _emitter(logging.DEBUG),
        _emitter(logging.INFO),
        _emitter(logging.WARNING),
        _emitter(logging.ERROR),
    )
