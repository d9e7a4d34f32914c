from typing import Optional

from app.lifecycle.entities import Payment
from app.lifecycle.views import DeadlineInfo


class PaymentResponse(Payment):
    deadline_info: Optional[DeadlineInfo] = None
