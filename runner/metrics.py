from prometheus_client import start_http_server, Counter, Gauge
import threading

from runner.logger import logger

# Metrics
LOOP_ITERATIONS = Counter("agent_loop_iterations_total", "Automation loop iterations")
LOOP_ERRORS = Counter("agent_loop_errors_total", "Automation loop iterations that failed unexpectedly")
DECISIONS = Counter("agent_decisions_total", "Decisions by source", ["source"])
ACTIONS_DISPATCHED = Counter("agent_actions_dispatched_total", "Executed actions by kind and result", ["kind", "result"])
REASONER_FALLBACKS = Counter("agent_reasoner_fallbacks_total", "Reasoning requests that fell back to the menu heuristic", ["reason"])
PROCESSING_MODE = Gauge("agent_processing_mode", "1 for the active processing mode, 0 otherwise", ["mode"])

_metrics_server_started = False
_metrics_lock = threading.Lock()

def start_metrics_server(port: int):
    global _metrics_server_started
    with _metrics_lock:
        if _metrics_server_started:
            return
        start_http_server(port)
        _metrics_server_started = True
        logger.info(f"Prometheus metrics server started on port {port}")

def set_mode_gauge(active: str, modes):
    for m in modes:
        PROCESSING_MODE.labels(mode=m).set(1 if m == active else 0)
