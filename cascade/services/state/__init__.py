from cascade.services.state.manager import StateManager, parse_state_id
from cascade.services.state.model import ItemState, RunStatus, StateError, Summary

__all__ = [
    "ItemState",
    "RunStatus",
    "StateError",
    "StateManager",
    "Summary",
    "parse_state_id",
]
