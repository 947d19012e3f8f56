from markerlint.refactor.engine import RefactorEngine

__all__ = ["RefactorEngine"]
