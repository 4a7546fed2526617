# main.py - Entry point for the skill engine and channel gateway
import os
import sys
import signal
import threading
import importlib

# Ensure project root is in sys.path for absolute imports
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import config
from api.channel_api import app, initialize_api_references
from connectors.agent_directory import InMemoryAgentDirectory
from connectors.data_sources import DataSources, UnconfiguredConnector
from core.capability_registry import build_capability_registry
from engine.channel_gateway import ChannelGateway
from engine.channel_router import ChannelRouter
from engine.cron_scheduler import CronScheduler
from engine.message_pipeline import MessagePipeline
from engine.pairing import PairingService
from memory.activity_log import ActivityLog
from memory.binding_store import BindingStore
from memory.price_tracker import PriceTracker
from memory.schedule_store import ScheduleStore
from utils.local_llm_connector import LocalLLMConnector
from utils.logger import log

CONNECTOR_NAMES = ("oracle", "chain", "token_economy", "qr")

# Global references for shutdown handler
scheduler_stop_event = threading.Event()


def shutdown_handler(signum, frame):
    """
    Handles graceful shutdown on SIGINT/SIGTERM: stops the scheduler thread,
    then leaves the process so the Flask server unwinds.
    """
    log(f"Signal {signum} received. Initiating graceful shutdown...")
    scheduler_stop_event.set()
    raise SystemExit(0)


def load_connectors() -> dict:
    """
    Builds the external clients from DATA_SOURCES_FACTORY ("package.module:function").
    The factory returns a dict keyed by connector name; anything it leaves out
    is an UnconfiguredConnector, whose calls fail as clean Outcomes.
    """
    connectors = {}
    if config.DATA_SOURCES_FACTORY:
        module_name, _, function_name = config.DATA_SOURCES_FACTORY.partition(":")
        factory = getattr(importlib.import_module(module_name), function_name or "create_connectors")
        connectors = factory() or {}
        log(f"[Main] Loaded connectors {sorted(connectors)} from {config.DATA_SOURCES_FACTORY}.", level="INFO")
    else:
        log("[Main] DATA_SOURCES_FACTORY not set. External data sources are unconfigured.", level="WARN")
    return {name: connectors.get(name) or UnconfiguredConnector(name) for name in CONNECTOR_NAMES}


def build_engine(agent_directory=None, text_generator=None, db_path=None):
    """Wires every component. Returns them in a dict for the API and the scheduler."""
    activity_log = ActivityLog(db_path)
    binding_store = BindingStore(db_path)
    schedule_store = ScheduleStore(db_path)
    agent_directory = agent_directory or InMemoryAgentDirectory.from_file(config.AGENTS_FILE)

    connectors = load_connectors()
    sources = DataSources(
        oracle=connectors["oracle"],
        chain=connectors["chain"],
        token_economy=connectors["token_economy"],
        qr=connectors["qr"],
        price_tracker=PriceTracker(connectors["oracle"]),
        activity_log=activity_log,
    )
    registry = build_capability_registry(sources)

    pipeline = MessagePipeline(agent_directory, text_generator or LocalLLMConnector(), registry, activity_log)
    pairing = PairingService(binding_store, agent_directory)
    router = ChannelRouter(binding_store, agent_directory, pairing, activity_log)
    gateway = ChannelGateway(router, pipeline, binding_store, activity_log)
    scheduler = CronScheduler(schedule_store, pipeline, agent_directory, activity_log)

    return {
        "registry": registry,
        "agent_directory": agent_directory,
        "activity_log": activity_log,
        "binding_store": binding_store,
        "schedule_store": schedule_store,
        "pairing": pairing,
        "router": router,
        "pipeline": pipeline,
        "gateway": gateway,
        "scheduler": scheduler,
    }


def seed_default_schedules(engine) -> None:
    """Agents without any schedule get their template's defaults."""
    store = engine["schedule_store"]
    for agent in engine["agent_directory"].list_agents():
        if not store.list_for_agent(agent.id):
            created = store.create_defaults(agent.id, agent.template_id)
            if created:
                log(f"[Main] Created {len(created)} default schedule(s) for agent {agent.id}.", level="INFO")


def main():
    # Setup signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    engine = build_engine()
    seed_default_schedules(engine)
    initialize_api_references(
        engine["gateway"], engine["registry"], engine["schedule_store"], engine["scheduler"],
        engine["agent_directory"], pairing_service=engine["pairing"], binding_store=engine["binding_store"],
    )

    scheduler_thread = threading.Thread(
        target=engine["scheduler"].run_forever, args=(scheduler_stop_event,), daemon=True, name="CronScheduler",
    )
    scheduler_thread.start()

    log(f"[Main] API listening on {config.API_HOST}:{config.API_PORT}.")
    try:
        app.run(host=config.API_HOST, port=config.API_PORT, debug=config.API_DEBUG_MODE,
                use_reloader=config.API_USE_RELOADER, threaded=True)
    finally:
        scheduler_stop_event.set()
        scheduler_thread.join(timeout=5)
        log("[Main] Shutdown complete.")


if __name__ == "__main__":
    main()
