"""Rich-based console output for teleprompter."""
from .display import Display
from .form import collect_values

__all__ = ['Display', 'collect_values']
