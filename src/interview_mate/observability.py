"""OpenTelemetry tracing for the analysis model calls."""

from __future__ import annotations

import logging
import os
from importlib import import_module
from typing import Optional

logger = logging.getLogger(__name__)

_initialized = False


def _should_capture_sensitive_data() -> bool:
    # Prompts carry candidate details, so message capture is opt-in.
    raw = os.getenv("IM_TRACING_CAPTURE_SENSITIVE", "false").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def initialize_tracing(
    *, endpoint: Optional[str] = None, enable_sensitive_data: Optional[bool] = None
) -> bool:
    """Configure agent framework tracing when ``IM_OTLP_ENDPOINT`` is set.

    Returns True only on the call that actually installed the exporter.
    """

    global _initialized
    if _initialized:
        return False

    otlp_endpoint = (endpoint or os.getenv("IM_OTLP_ENDPOINT", "")).strip()
    if not otlp_endpoint:
        logger.info("Tracing skipped because IM_OTLP_ENDPOINT is not set.")
        return False

    try:
        setup = import_module("agent_framework.observability").setup_observability
        setup(
            otlp_endpoint=otlp_endpoint,
            enable_sensitive_data=enable_sensitive_data
            if enable_sensitive_data is not None
            else _should_capture_sensitive_data(),
        )
    except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-except
        logger.warning("Tracing initialization failed: %s", exc)
        return False

    _initialized = True
    logger.info("Tracing initialized with OTLP endpoint %s", otlp_endpoint)
    return True
