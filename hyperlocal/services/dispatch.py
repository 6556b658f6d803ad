import json
import logging
from datetime import datetime
from typing import Optional
import redis
from hyperlocal.models.database import Order

logger = logging.getLogger(__name__)


class DispatchNotifier:
    """
    Fire-and-forget hand-off of new orders to the parcel/dispatch consumer.

    Events are appended to a Redis stream; a failed publish is logged and
    dropped, it never affects the order that triggered it.
    """

    EVENT_TYPE = "order_created"

    def __init__(self, redis_client: Optional[redis.Redis], stream: str, maxlen: int = 10000):
        self.redis_client = redis_client
        self.stream = stream
        self.maxlen = maxlen

    def notify_order_created(self, order: Order) -> Optional[str]:
        if self.redis_client is None:
            return None

        payload = {
            "order_id": order.id,
            "order_number": order.order_number,
            "store_id": order.store_id,
            "customer_id": order.customer_id,
            "latitude": order.delivery_latitude,
            "longitude": order.delivery_longitude,
            "total_amount": order.total_amount,
        }
        try:
            return self.redis_client.xadd(
                self.stream,
                {
                    "event_type": self.EVENT_TYPE,
                    "payload": json.dumps(payload),
                    "timestamp": datetime.utcnow().isoformat(),
                },
                maxlen=self.maxlen,
                approximate=True,
            )
        except redis.RedisError as e:
            logger.error(f"Failed to publish dispatch event for order {order.order_number}: {e}")
            return None
