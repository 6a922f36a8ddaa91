"""
Общие модели API.
"""
