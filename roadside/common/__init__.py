"""
Общие компоненты: константы, исключения, логирование.
"""
