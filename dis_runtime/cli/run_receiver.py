"""
Main entry point for the DIS receiver.

Joins an exercise on UDP, tracks every remote entity, and runs the tick
loop. Each tick: advance the clock, dead reckon all trackers, then push
the resulting entity events and any pass-through PDUs through the
transport adapters.
"""

import asyncio
import logging
import signal

import click

from dis_runtime.codec.pdus import Pdu
from dis_runtime.core.clock import SimulationClock
from dis_runtime.core.config import RuntimeConfig, load_config
from dis_runtime.core.entity_manager import EntityManager
from dis_runtime.core.pdu_processor import PduProcessor
from dis_runtime.core.tracker import EntityEvent
from dis_runtime.transport.console_adapter import ConsoleAdapter
from dis_runtime.transport.registry import TransportRegistry
from dis_runtime.transport.udp_adapter import UdpAdapter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


async def receiver_loop(
    clock: SimulationClock,
    manager: EntityManager,
    processor: PduProcessor,
    registry: TransportRegistry,
    pending_events: list[EntityEvent],
    pending_pdus: list[Pdu],
    tick_interval_s: float,
    stop_event: asyncio.Event,
) -> None:
    """Tick loop. Runs until the user stops it."""
    tick_count = 0

    while not stop_event.is_set():
        manager.tick(clock.advance())

        # Events queued by PDUs received since the last tick plus this tick's
        events, pending_events[:] = list(pending_events), []
        pdus, pending_pdus[:] = list(pending_pdus), []
        await registry.push_bulk_update(events)
        for pdu in pdus:
            await registry.push_event(pdu)

        tick_count += 1
        if tick_count % 300 == 0:
            stats = processor.stats
            logger.info(
                f"Tick {tick_count} | Entities: {manager.count} | "
                f"PDUs: {stats.decoded}/{stats.received} "
                f"(malformed {stats.malformed}, unknown {stats.unknown_type})"
                + (" | FROZEN" if manager.frozen else "")
            )

        await asyncio.sleep(tick_interval_s)


async def run(config: RuntimeConfig, transport: str) -> None:
    """Run the receiver."""
    print(f"\nDIS Runtime v{VERSION}")
    print("=" * 40)

    transport_names = [t.strip() for t in transport.split(",")]

    clock = SimulationClock(speed=config.speed)
    manager = EntityManager(
        heartbeat_timeout_s=config.heartbeat_timeout_s,
        dead_reckoning_enabled=config.dead_reckoning_enabled,
        exercise_id=config.exercise_id if config.filter_exercise else None,
    )
    processor = PduProcessor(manager)

    pending_events: list[EntityEvent] = []
    pending_pdus: list[Pdu] = []
    manager.on_update(pending_events.append)
    manager.on_event(pending_pdus.append)

    registry = TransportRegistry()
    if "console" in transport_names:
        registry.register(ConsoleAdapter(min_interval=config.console_interval_s))
    if "udp" in transport_names:
        registry.register(UdpAdapter(
            processor,
            exercise_id=config.exercise_id,
            bind_address=config.bind_address,
            port=config.port,
            broadcast_address=config.broadcast_address,
        ))
        print(f"Listening on udp://{config.bind_address}:{config.port} (exercise {config.exercise_id})")

    await registry.connect_all()

    clock.start()
    print(f"Heartbeat timeout {config.heartbeat_timeout_s}s, tick rate {config.tick_rate_hz}Hz")
    print("Press Ctrl+C to stop\n")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await receiver_loop(
        clock=clock,
        manager=manager,
        processor=processor,
        registry=registry,
        pending_events=pending_events,
        pending_pdus=pending_pdus,
        tick_interval_s=config.tick_interval_s,
        stop_event=stop,
    )

    print("\nShutting down...")
    clock.pause()
    stats = processor.stats
    print(f"Received {stats.received} datagrams, decoded {stats.decoded}")
    print(f"Entities tracked at exit: {manager.count}")

    await registry.disconnect_all()
    for name, failed in registry.failures.items():
        print(f"Transport {name}: {failed} failed calls")
    print("Receiver stopped")


@click.command()
@click.option("--config", "-c", "config_path", default=None, help="Path to runtime YAML config")
@click.option("--port", default=None, type=int, help="UDP port (overrides config)")
@click.option("--exercise", default=None, type=int, help="Exercise ID (overrides config)")
@click.option("--speed", default=None, type=float, help="Clock speed multiplier")
@click.option("--transport", default="udp,console", help="Comma-separated transports (udp,console)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def main(
    config_path: str | None, port: int | None, exercise: int | None,
    speed: float | None, transport: str, verbose: bool,
) -> None:
    """DIS Runtime: track and dead reckon entities in a DIS exercise."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(config_path)
    overrides = {"port": port, "exercise_id": exercise, "speed": speed}
    data = config.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    asyncio.run(run(RuntimeConfig.from_dict(data), transport))


if __name__ == "__main__":
    main()
