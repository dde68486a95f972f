"""
api package: FastAPI routers exposing the conversation to a chat frontend.

- conversation: state snapshot, message submission, preferences, error and reset
- entities: reminder and calendar-event management
"""
