import traceback

from runner import config, metrics
from runner.logger import log
from runner.services import build_services

_services = None

async def init_services(app):
    global _services
    _services = build_services()
    try:
        await _services.start()
    except Exception as e:
        traceback.print_exc()
        log("ERROR", "services_start_failed", "Device backend failed to start; API runs without a device", error=str(e))

    if config.PROMETHEUS_METRICS_PORT:
        metrics.start_metrics_server(config.PROMETHEUS_METRICS_PORT)

    @app.on_event("shutdown")
    async def shutdown():
        if _services:
            await _services.stop()

def get_automation_loop():
    return _services.loop if _services else None

def get_frame_buffer():
    return _services.frame_buffer if _services else None
