from wsbridge.schemas.action import Action, is_standard_action

__all__ = ["Action", "is_standard_action"]
