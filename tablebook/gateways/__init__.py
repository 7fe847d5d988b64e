"""Payment processor gateways"""

from tablebook.gateways.base import PaymentGateway, ProcessorIntent, ProcessorRefund

__all__ = ["PaymentGateway", "ProcessorIntent", "ProcessorRefund"]
