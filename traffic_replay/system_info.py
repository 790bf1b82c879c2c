"""
Snapshot of the load-generator host, taken before a replay starts so that
interference on the client machine can be spotted next to the results.
"""

from datetime import datetime
from typing import Any, Dict

import psutil


def get_system_state(sample_seconds: float = 0.5) -> Dict[str, Any]:
    """Collect current CPU, memory and load figures for this machine."""
    mem = psutil.virtual_memory()
    state: Dict[str, Any] = {
        "timestamp": datetime.now().isoformat(),
        "cpu": {
            "logical_cores": psutil.cpu_count(logical=True),
            "usage_percent": psutil.cpu_percent(interval=sample_seconds),
        },
        "memory": {
            "total_gb": round(mem.total / (1024**3), 2),
            "available_gb": round(mem.available / (1024**3), 2),
            "usage_percent": mem.percent,
        },
    }

    # Load average (Unix only)
    try:
        load_avg = psutil.getloadavg()
        state["load_average"] = {
            "1min": round(load_avg[0], 2),
            "5min": round(load_avg[1], 2),
            "15min": round(load_avg[2], 2),
        }
    except (AttributeError, OSError):
        state["load_average"] = None

    return state


def format_system_state(state: Dict[str, Any]) -> str:
    lines = [
        f"Host state at {state['timestamp']}:",
        f"  CPU:     {state['cpu']['usage_percent']:.1f}% of {state['cpu']['logical_cores']} cores",
        f"  Memory:  {state['memory']['usage_percent']:.1f}% used, "
        f"{state['memory']['available_gb']} GB available of {state['memory']['total_gb']} GB",
    ]
    load = state.get("load_average")
    if load:
        lines.append(f"  Load:    {load['1min']} / {load['5min']} / {load['15min']}")
    return "\n".join(lines)
