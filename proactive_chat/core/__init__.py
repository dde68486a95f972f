"""
core package: the conversation engine's control flow.

- policy: which generations a message triggers
- orchestrator: the per-conversation controller behind every user action
"""
