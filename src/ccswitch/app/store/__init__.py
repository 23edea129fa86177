from .service import ConfigStore, Transaction

__all__ = ["ConfigStore", "Transaction"]
