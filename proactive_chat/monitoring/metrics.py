"""
Core metrics and monitoring decorators for the conversation engine.

This module defines Prometheus metrics and decorators for tracking:
- LLM gateway latency per operation
- Error rates
- Messages appended to the conversation
- Outcomes of auxiliary extractions and proactive jobs
"""

import time
import functools
import logging
from typing import Callable, Optional
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Error metrics
ERROR_COUNT = Counter(
    'error_total',
    'Total number of errors',
    ['type', 'location']  # type: e.g., 'generation', 'storage'; location: specific component
)

# External API metrics
LLM_REQUEST_TIME = Histogram(
    'llm_request_duration_seconds',
    'Time spent waiting for the LLM API',
    ['operation'],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float("inf")]
)

# Conversation metrics
MESSAGES_APPENDED = Counter(
    'messages_appended_total',
    'Messages appended to the conversation',
    ['sender', 'type']
)

EXTRACTION_RESULTS = Counter(
    'extraction_results_total',
    'Outcome of auxiliary generations triggered by a message',
    ['trigger', 'outcome']  # outcome: 'applied', 'empty', 'failed'
)

PROACTIVE_JOBS = Counter(
    'proactive_jobs_total',
    'Proactive follow-up jobs by outcome',
    ['outcome']  # outcome: 'scheduled', 'cancelled', 'appended', 'empty', 'stale'
)

def track_latency(metric: Histogram, labels: Optional[Callable] = None) -> Callable:
    """
    A decorator factory that tracks the execution time of a coroutine function using a Prometheus Histogram.

    Args:
        metric (Histogram): The Prometheus Histogram to record the timing in
        labels (Callable, optional): Function receiving the call's positional arguments
            (self first, for methods) and returning the metric labels dictionary

    Returns:
        Callable: The decorated coroutine function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                if labels:
                    metric.labels(**labels(*args)).observe(duration)
                else:
                    metric.observe(duration)

                func_name = func.__name__
                logger.debug(
                    f"Function {func_name} execution time: {duration:.2f} seconds",
                    extra={'duration': duration, 'function': func_name}
                )
        return wrapper
    return decorator

def track_errors(error_type: str, location: str) -> Callable:
    """
    A decorator factory that counts exceptions escaping a coroutine function.

    Args:
        error_type (str): Type of error (e.g., 'generation', 'storage')
        location (str): Where the error occurred

    Returns:
        Callable: The decorated coroutine function

    Example:
        @track_errors('generation', 'generate_response')
        async def generate_response(self, history):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                ERROR_COUNT.labels(
                    type=error_type,
                    location=location
                ).inc()

                logger.error(
                    f"Error in {location} ({error_type}): {str(e)}",
                    extra={
                        'error_type': error_type,
                        'location': location,
                        'error': str(e)
                    }
                )
                raise  # Re-raise the exception after tracking
        return wrapper
    return decorator
