from .application import SmmPanelApplication

__all__ = ["SmmPanelApplication"]
