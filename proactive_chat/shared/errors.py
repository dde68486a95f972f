"""
shared/errors.py

Exceptions shared by the gateway, the entity store and the orchestrator.

Only two failure kinds ever reach the conversation status: a failed primary response
(GenerationError) and a store operation that could not complete (StorageFailure). Missed
extractions and unknown ids are not errors and have no exception type.
"""


class ProactiveChatError(Exception):
    """Base class for errors raised by the conversation engine."""
    pass


class GenerationError(ProactiveChatError):
    """The AI gateway could not produce a response (transport, timeout, or unparsable payload)."""
    pass


class StorageFailure(ProactiveChatError):
    """An entity store operation could not complete; the store is left unchanged."""
    pass
