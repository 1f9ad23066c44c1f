def __getattr__(name):
    if name == "DebugPipeline":
        from .agents.pipeline import DebugPipeline
        return DebugPipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = ['DebugPipeline']
