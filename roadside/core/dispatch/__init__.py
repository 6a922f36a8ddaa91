from roadside.core.dispatch.coordinator import DispatchCoordinator
from roadside.core.dispatch.state_machine import RequestStateMachine

__all__ = ["DispatchCoordinator", "RequestStateMachine"]
