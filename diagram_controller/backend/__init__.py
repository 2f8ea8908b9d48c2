"""
HTTP shell: FastAPI application and WebSocket change notifications.
"""
