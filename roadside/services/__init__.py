"""
Сервисы: HTTP API и realtime-шлюз.
"""
