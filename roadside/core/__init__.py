"""
Доменный слой: геометрия, тарифы, заявки, журнал транзакций и координатор.
"""
