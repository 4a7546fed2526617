# capability_handlers/qr_handlers.py
from datetime import datetime
from typing import List
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.display_format import truncate
from utils.logger import log

QR_ACTIVITY_MESSAGE = "QR code generated"
MAX_QR_HISTORY = 50


async def execute_generate_qr(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    content = params[0].strip() if params and params[0] else ""
    if not content:
        return Outcome.fail(usage_hint("GENERATE_QR"), error="Missing content")
    try:
        data_url = await sources.qr.generate_data_url(content)
    except Exception as e:
        log(f"[QrHandlers] QR generation failed: {e}", level="WARN")
        return Outcome.fail(f"❌ QR generation failed: {e}", error=str(e))

    if context.agent_id:
        sources.activity_log.record(context.agent_id, "info", QR_ACTIVITY_MESSAGE, {
            "content_preview": truncate(content, 80),
            "content_length": len(content),
            "generated_at": datetime.now().isoformat(),
        })

    display = "\n".join([
        "📱 **QR Code Generated**", "",
        f"Content encoded: {truncate(content, 60)}", "",
        "Scan the QR code below:", "",
        f"![QR Code]({data_url})", "",
        "_QR generation logged to activity._",
    ])
    return Outcome.ok(display, content_length=len(content))


async def execute_list_qr_history(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        limit = int(params[0]) if params and params[0] else 10
    except ValueError:
        limit = 10
    limit = max(1, min(limit, MAX_QR_HISTORY))
    if not context.agent_id:
        return Outcome.fail("Cannot list QR history without agent context.", error="No agent context")

    entries = sources.activity_log.list_entries(context.agent_id, entry_type="info",
                                                message=QR_ACTIVITY_MESSAGE, limit=limit)
    if not entries:
        return Outcome.ok("📋 **QR History**\n\nNo QR codes generated yet. Use [[GENERATE_QR|content]] to create one.",
                          count=0)
    lines = ["📋 **QR Code History**", ""]
    for i, entry in enumerate(entries, start=1):
        preview = (entry.get("metadata") or {}).get("content_preview") or "(unknown)"
        lines.append(f"{i}. {preview} ({entry.get('created_at', '-')})")
    lines += ["", f"_{len(entries)} recent QR generation(s)._"]
    return Outcome.ok("\n".join(lines), count=len(entries))


HANDLERS = {
    "GENERATE_QR": execute_generate_qr,
    "LIST_QR_HISTORY": execute_list_qr_history,
}
