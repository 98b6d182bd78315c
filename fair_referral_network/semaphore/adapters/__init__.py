from .mock_adapter import MockProofBackend

__all__ = ["MockProofBackend"]
