# api/channel_api.py

import asyncio
import hmac
from dataclasses import asdict
from flask import Flask, jsonify, request
import config
from connectors.channel_adapters import ChannelReply, get_adapter
from core.errors import AgentNotFoundError, ChannelApiError, PairingCodeGenerationError, StoreError
from core.prompt_generator import render_capability_block
from engine.channel_router import MODE_DEDICATED
from utils.logger import log as api_log

# --- Global engine references (initialized externally) ---
ENGINE_GATEWAY = None
ENGINE_REGISTRY = None
ENGINE_SCHEDULE_STORE = None
ENGINE_SCHEDULER = None
ENGINE_AGENT_DIRECTORY = None
ENGINE_PAIRING = None
ENGINE_BINDING_STORE = None

app = Flask(__name__)


def initialize_api_references(gateway, registry, schedule_store, scheduler, agent_directory,
                              pairing_service=None, binding_store=None):
    """
    Initializes engine component references for use within API routes.
    """
    global ENGINE_GATEWAY, ENGINE_REGISTRY, ENGINE_SCHEDULE_STORE, ENGINE_SCHEDULER
    global ENGINE_AGENT_DIRECTORY, ENGINE_PAIRING, ENGINE_BINDING_STORE
    ENGINE_GATEWAY = gateway
    ENGINE_REGISTRY = registry
    ENGINE_SCHEDULE_STORE = schedule_store
    ENGINE_SCHEDULER = scheduler
    ENGINE_AGENT_DIRECTORY = agent_directory
    ENGINE_PAIRING = pairing_service
    ENGINE_BINDING_STORE = binding_store
    api_log("[API] Engine references initialized.")


def _bearer_ok(expected: str) -> bool:
    """An empty secret leaves the endpoint open."""
    if not expected:
        return True
    return hmac.compare_digest(request.headers.get("Authorization") or "", f"Bearer {expected}")


def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def _not_initialized():
    return jsonify({"error": "Engine not initialized"}), 503


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _get_agent_or_404(agent_id):
    agent = ENGINE_AGENT_DIRECTORY.get_agent(agent_id)
    if agent is None:
        return None, (jsonify({"error": f"Agent '{agent_id}' not found"}), 404)
    return agent, None


# --- Inbound messages ---

@app.route('/webhook', methods=['POST'])
def inbound_webhook():
    if not _bearer_ok(config.WEBHOOK_TOKEN):
        return _unauthorized()
    if ENGINE_GATEWAY is None:
        return _not_initialized()

    payload = _json_body()
    if payload is None:
        return jsonify({"error": "Malformed JSON payload"}), 400
    try:
        outbound = asyncio.run(ENGINE_GATEWAY.handle_inbound(payload))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except StoreError as e:
        api_log(f"[API] Webhook persistence failure: {e}", level="ERROR")
        return jsonify({"error": "Failed to persist channel state", "action": "error"}), 500
    return jsonify(outbound.to_dict())


@app.route('/channels/telegram/<agent_id>', methods=['POST'])
def telegram_webhook(agent_id):
    if ENGINE_GATEWAY is None:
        return _not_initialized()

    agent = ENGINE_AGENT_DIRECTORY.get_agent(agent_id)
    if agent is None or not agent.telegram_bot_token:
        # 200 so Telegram stops retrying
        return jsonify({"ok": True})

    adapter = get_adapter("telegram")
    if not adapter.verify_webhook(request.headers, agent.telegram_webhook_secret):
        api_log(f"[API] Rejected Telegram update for agent {agent_id}: bad secret token.", level="WARN")
        return _unauthorized()

    payload = adapter.parse_update(request.get_json(silent=True) or {})
    if payload is None:
        return jsonify({"ok": True})
    payload["routing"] = {"bot_id": agent_id}

    adapter.send_typing(agent.telegram_bot_token, payload["chat"]["id"])
    try:
        outbound = asyncio.run(ENGINE_GATEWAY.handle_inbound(payload))
    except (ValueError, StoreError) as e:
        api_log(f"[API] Telegram update for agent {agent_id} not processed: {e}", level="ERROR")
        return jsonify({"ok": True})

    if outbound.reply:
        adapter.send_message(agent.telegram_bot_token, ChannelReply(
            text=outbound.reply,
            chat_id=payload["chat"]["id"],
            reply_to_message_id=payload["message"]["id"],
            media=outbound.media,
        ))
    return jsonify({"ok": True})


@app.route('/agents/<agent_id>/chat', methods=['POST'])
def web_chat(agent_id):
    if ENGINE_GATEWAY is None:
        return _not_initialized()
    agent, error = _get_agent_or_404(agent_id)
    if error:
        return error

    data = _json_body()
    if data is None or not isinstance(data.get("message"), str) or not data["message"].strip():
        return jsonify({"error": "'message' is required"}), 400

    session_id = str(data.get("session_id") or "web")
    payload = {
        "channel": "web",
        "sender": {"id": session_id, "name": data.get("sender_name")},
        "chat": {"id": session_id},
        "message": {"text": data["message"]},
        "routing": {"session_id": session_id, "agent_id": agent.id},
    }
    # Only the owner may spend from the agent wallet
    can_use_agent_wallet = bool(config.API_ADMIN_TOKEN) and _bearer_ok(config.API_ADMIN_TOKEN)
    try:
        outbound = asyncio.run(ENGINE_GATEWAY.handle_inbound(payload, can_use_agent_wallet=can_use_agent_wallet))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except StoreError as e:
        api_log(f"[API] Web chat persistence failure: {e}", level="ERROR")
        return jsonify({"error": "Failed to persist chat state"}), 500
    return jsonify(outbound.to_dict())


# --- Capabilities ---

@app.route('/agents/<agent_id>/capabilities', methods=['GET'])
def agent_capabilities(agent_id):
    if ENGINE_REGISTRY is None:
        return _not_initialized()
    agent, error = _get_agent_or_404(agent_id)
    if error:
        return error

    template_id = request.args.get("template") or agent.template_id
    definitions = ENGINE_REGISTRY.list_for_template(template_id)
    return jsonify({
        "agent_id": agent.id,
        "template": template_id,
        "capabilities": [asdict(d) for d in definitions],
        "prompt_block": render_capability_block(ENGINE_REGISTRY, template_id, agent.wallet_address),
    })


# --- Pairing and bindings (owner) ---

@app.route('/agents/<agent_id>/pairing-code', methods=['POST', 'DELETE'])
def pairing_code(agent_id):
    if not _bearer_ok(config.API_ADMIN_TOKEN):
        return _unauthorized()
    if ENGINE_PAIRING is None:
        return _not_initialized()

    if request.method == 'DELETE':
        ENGINE_PAIRING.revoke(agent_id)
        return jsonify({"message": f"Pairing code revoked for '{agent_id}'."})

    try:
        issued = ENGINE_PAIRING.get_or_create(agent_id)
    except AgentNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PairingCodeGenerationError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify(issued)


@app.route('/agents/<agent_id>/bindings', methods=['GET'])
def agent_bindings(agent_id):
    if not _bearer_ok(config.API_ADMIN_TOKEN):
        return _unauthorized()
    if ENGINE_BINDING_STORE is None:
        return _not_initialized()
    return jsonify(ENGINE_BINDING_STORE.list_for_agent(agent_id))


@app.route('/agents/<agent_id>/channels/telegram', methods=['POST', 'DELETE'])
def telegram_channel(agent_id):
    if not _bearer_ok(config.API_ADMIN_TOKEN):
        return _unauthorized()
    if ENGINE_AGENT_DIRECTORY is None:
        return _not_initialized()
    agent, error = _get_agent_or_404(agent_id)
    if error:
        return error

    adapter = get_adapter("telegram")
    if request.method == 'DELETE':
        outcome = adapter.disconnect(agent.id, {"bot_token": agent.telegram_bot_token})
        ENGINE_AGENT_DIRECTORY.update_agent(agent.id, telegram_bot_token=None, telegram_webhook_secret=None,
                                            telegram_bot_username=None)
        if ENGINE_BINDING_STORE is not None:
            outcome = dict(outcome, bindings_removed=ENGINE_BINDING_STORE.deactivate_for_agent(
                agent.id, "telegram", mode=MODE_DEDICATED))
        return jsonify(outcome)

    data = _json_body() or {}
    try:
        outcome = adapter.connect(agent.id, {"bot_token": data.get("bot_token"),
                                             "base_url": data.get("base_url")})
    except ChannelApiError as e:
        return jsonify({"success": False, "error": str(e)}), 502
    if not outcome["success"]:
        return jsonify(outcome), 400

    ENGINE_AGENT_DIRECTORY.update_agent(agent.id, telegram_bot_token=data["bot_token"],
                                        telegram_webhook_secret=outcome["webhook_secret"],
                                        telegram_bot_username=outcome.get("bot_username"))
    return jsonify({"success": True, "bot_username": outcome.get("bot_username")})


# --- Schedules (owner) ---

@app.route('/agents/<agent_id>/schedules', methods=['GET', 'POST'])
def agent_schedules(agent_id):
    if not _bearer_ok(config.API_ADMIN_TOKEN):
        return _unauthorized()
    if ENGINE_SCHEDULE_STORE is None:
        return _not_initialized()
    agent, error = _get_agent_or_404(agent_id)
    if error:
        return error

    if request.method == 'GET':
        return jsonify([s.to_dict() for s in ENGINE_SCHEDULE_STORE.list_for_agent(agent.id)])

    data = _json_body()
    if data is None:
        return jsonify({"error": "Malformed JSON payload"}), 400
    try:
        schedule = ENGINE_SCHEDULE_STORE.create(agent.id, data.get("name"), data.get("schedule"),
                                                data.get("prompt"), bool(data.get("enabled", True)))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(schedule.to_dict()), 201


@app.route('/agents/<agent_id>/schedules/<schedule_id>', methods=['PUT', 'DELETE'])
def agent_schedule(agent_id, schedule_id):
    if not _bearer_ok(config.API_ADMIN_TOKEN):
        return _unauthorized()
    if ENGINE_SCHEDULE_STORE is None:
        return _not_initialized()

    existing = ENGINE_SCHEDULE_STORE.get(schedule_id)
    if existing is None or existing.agent_id != agent_id:
        return jsonify({"error": f"Schedule '{schedule_id}' not found"}), 404

    if request.method == 'DELETE':
        ENGINE_SCHEDULE_STORE.delete(schedule_id)
        return jsonify({"message": f"Schedule '{existing.name}' deleted."})

    data = _json_body()
    if data is None:
        return jsonify({"error": "Malformed JSON payload"}), 400
    try:
        updated = ENGINE_SCHEDULE_STORE.update(schedule_id, name=data.get("name"), schedule=data.get("schedule"),
                                               prompt=data.get("prompt"), enabled=data.get("enabled"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(updated.to_dict())


# --- Cron trigger ---

@app.route('/cron/tick', methods=['GET', 'POST'])
def cron_tick():
    if not _bearer_ok(config.CRON_SECRET):
        return _unauthorized()
    if ENGINE_SCHEDULER is None:
        return _not_initialized()
    try:
        summary = asyncio.run(ENGINE_SCHEDULER.tick())
    except StoreError as e:
        api_log(f"[API] Cron tick failed: {e}", level="ERROR")
        return jsonify({"error": "Cron tick failed"}), 500
    return jsonify(summary)


@app.route('/health')
def health():
    return {
        "status": "running",
        "capabilities": len(ENGINE_REGISTRY.list_all()) if ENGINE_REGISTRY else 0,
    }
