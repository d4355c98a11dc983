import json
from aio_pika import connect_robust, Message, ExchangeType
from pickleball_crew.core.config import settings
from pickleball_crew.core.logging import logger

EXCHANGE_NAME = "pickleball.events"

_connection = None
_channel = None


async def get_rabbit_connection():
    global _connection, _channel
    if _connection and not _connection.is_closed:
        return _connection, _channel
    _connection = await connect_robust(settings.RABBITMQ_URL)
    _channel = await _connection.channel()
    return _connection, _channel


async def publish_event(routing_key: str, payload: dict):
    _, channel = await get_rabbit_connection()
    exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
    body = json.dumps({"type": routing_key, **payload}, default=str).encode()
    message = Message(body, content_type="application/json")
    await exchange.publish(message, routing_key=routing_key)


async def publish_notification(routing_key: str, payload: dict) -> bool:
    """
    Publish a notification event after the triggering change is committed.

    Returns False instead of raising when the broker is unreachable; the
    session or RSVP change stands either way.
    """
    try:
        await publish_event(routing_key, payload)
        return True
    except Exception as e:
        logger.error(f"Could not publish {routing_key} for {payload}: {e}")
        return False
