# runner/paths.py
import os

DATA_ROOT = os.getenv("AGENT_DATA_ROOT", "/tmp/match_agent_data")

def make_data_dir(root: str = None) -> str:
    path = root or DATA_ROOT
    os.makedirs(path, exist_ok=True)
    return path

def actions_log_path(data_dir: str, filename: str = "actions.jsonl") -> str:
    return os.path.join(data_dir, filename)

def model_stats_path(data_dir: str, filename: str = "model_stats.json") -> str:
    return os.path.join(data_dir, filename)
