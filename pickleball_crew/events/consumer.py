import asyncio
import json
from aio_pika import connect_robust, ExchangeType
from pickleball_crew.core.config import settings
from pickleball_crew.core.logging import logger
from pickleball_crew.db.session import AsyncSessionLocal
from pickleball_crew.events.publisher import EXCHANGE_NAME
from pickleball_crew.services.notifications import DispatchReport, EMPTY_REPORT, NotificationService

QUEUE_NAME = "pickleball.notifications"
ROUTING_KEYS = ("session.*", "rsvp.*")


async def handle_message(body: bytes, session_factory=AsyncSessionLocal, sender=None) -> DispatchReport:
    """Decode one event and send the emails it calls for."""
    try:
        data = json.loads(body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Dropping undecodable notification message: {e}")
        return EMPTY_REPORT

    event_type = data.get("type")
    async with session_factory() as session:
        report = await NotificationService(session, sender=sender).handle(event_type, data)

    if report.results:
        logger.info(f"{event_type}: {len(report.sent)} sent, {len(report.failed)} failed")
    return report


async def run_worker():
    max_retries = 10
    delay = 5  # seconds
    for attempt in range(1, max_retries + 1):
        try:
            connection = await connect_robust(settings.RABBITMQ_URL)
            logger.info("Successfully connected to RabbitMQ")
            break
        except Exception as e:
            logger.error(f"RabbitMQ connection failed (attempt {attempt}/{max_retries}): {e}")
            if attempt == max_retries:
                raise
            await asyncio.sleep(delay)
    channel = await connection.channel()
    # One message at a time keeps the send pacing global across events
    await channel.set_qos(prefetch_count=1)
    exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
    queue = await channel.declare_queue(QUEUE_NAME, durable=True)
    for routing_key in ROUTING_KEYS:
        await queue.bind(exchange, routing_key=routing_key)
    async with queue.iterator() as queue_iter:
        async for message in queue_iter:
            async with message.process():
                try:
                    await handle_message(message.body)
                except Exception as e:
                    logger.exception(f"Error handling message: {e}")


if __name__ == "__main__":
    asyncio.run(run_worker())
