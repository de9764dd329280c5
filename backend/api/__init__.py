"""
HTTP and WebSocket routers
"""
