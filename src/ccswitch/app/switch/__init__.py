from .service import SwitchCoordinator, SwitchResult, switch_in, write_live

__all__ = ["SwitchCoordinator", "SwitchResult", "switch_in", "write_live"]
