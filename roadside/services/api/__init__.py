"""
HTTP API и WebSocket шлюз.
"""
