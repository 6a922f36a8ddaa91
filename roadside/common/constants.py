"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    CLIENT = "client"
    WORKER = "worker"
    ADMIN = "admin"


class ServiceType(str, Enum):
    """Категории обслуживания."""
    MECHANIC = "mechanic"
    TOW_TRUCK = "tow_truck"
    ROAD_ASSISTANCE = "road_assistance"
    OTHER = "other"


class RequestStatus(str, Enum):
    """Статусы заявки."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    RATED = "rated"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Статусы оплаты заявки."""
    PAID = "paid"
    REFUNDED = "refunded"
    REFUND_FAILED = "refund_failed"


class CaptureStatus(str, Enum):
    """Статус платежа во внешнем шлюзе."""
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class TransactionType(str, Enum):
    """Типы записей в журнале транзакций."""
    WORKER_EARNINGS = "worker_earnings"
    PLATFORM_FEE = "platform_fee"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    """Статусы транзакции."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PixKeyType(str, Enum):
    """Типы ключа PIX."""
    CPF = "cpf"
    CNPJ = "cnpj"
    EMAIL = "email"
    PHONE = "phone"
    RANDOM = "random"


class RefundFailurePolicy(str, Enum):
    """Поведение отмены при неудачном возврате."""
    PROCEED = "proceed"
    BLOCK = "block"


class NotificationType(str, Enum):
    """Типы realtime-событий для пользователей."""
    NEW_SERVICE_REQUEST = "new_service_request"
    SERVICE_REQUEST_ACCEPTED = "service_request_accepted"
    SERVICE_REQUEST_STARTED = "service_request_started"
    SERVICE_REQUEST_TAKEN = "service_request_taken"
    MECHANIC_ARRIVED = "mechanic_arrived"
    SERVICE_REQUEST_COMPLETED = "service_request_completed"
    SERVICE_REQUEST_CONFIRMED = "service_request_confirmed"
    SERVICE_REQUEST_RATED = "service_request_rated"
    SERVICE_REQUEST_CANCELLED = "service_request_cancelled"
    PAYMENT_RELEASED = "payment_released"
    NEW_CHAT_MESSAGE = "new_chat_message"


# Статусы, в которых у пользователя есть активная заявка
ACTIVE_REQUEST_STATUSES = (RequestStatus.ACCEPTED, RequestStatus.ARRIVED)

# Статусы, попадающие в историю
HISTORY_REQUEST_STATUSES = (RequestStatus.COMPLETED, RequestStatus.RATED, RequestStatus.CANCELLED)
