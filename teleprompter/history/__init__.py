"""Run history storage for teleprompter."""
from .run_store import TestRun, RunStore, get_run_store

__all__ = ['TestRun', 'RunStore', 'get_run_store']
