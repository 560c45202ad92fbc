from .context_engine import (
    ContextEngine,
    ContextEngineFactory,
    EngineCredentials,
    ExportMode,
    IndexingResult,
)

__all__ = [
    "ContextEngine",
    "ContextEngineFactory",
    "EngineCredentials",
    "ExportMode",
    "IndexingResult",
]
