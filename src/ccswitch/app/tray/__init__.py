from .actions import TrayAction, decode_menu_id, encode_menu_id, perform

__all__ = ["TrayAction", "decode_menu_id", "encode_menu_id", "perform"]
