"""Common utilities: path management, identifiers and word counting"""
import os
import uuid
from typing import List

# ⚠️ DO NOT import settings here - causes circular import with config.py


# ============= Path Management =============

def get_project_root() -> str:
    """Returns the absolute path to the project's root directory."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def get_log_file_path() -> str:
    """Creates the log directory if it doesn't exist and returns the full log file path."""
    log_dir = os.path.join(get_project_root(), 'log')
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, 'tender_engine.log')


# ============= Identifiers =============

def new_id() -> str:
    return str(uuid.uuid4())



# ============= Words =============

def split_words(text: str) -> List[str]:
    """Whitespace tokenization used by chunking and every word count."""
    return (text or "").split()


def count_words(text: str) -> int:
    return len(split_words(text))
