"""
Structured logging for trustflow (structlog). Use get_logger(__name__) everywhere.
"""

from trustflow.trustflow_logging.logger import bind_agent, configure_logging, get_logger, job_context

__all__ = ["bind_agent", "configure_logging", "get_logger", "job_context"]
