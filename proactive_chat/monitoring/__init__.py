"""
monitoring/__init__.py

Prometheus metrics for the conversation engine. The ASGI metrics endpoint is mounted by main.py.
"""
