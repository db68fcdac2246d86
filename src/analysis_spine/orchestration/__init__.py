"""Analysis orchestration -- the use-case layer.

Example::

    from analysis_spine.orchestration import AnalysisContext, build_orchestrator

    orchestrator = build_orchestrator(call_provider)
    outcome = await orchestrator.generate("job-fit", AnalysisContext(...))
"""

from analysis_spine.orchestration.analysis import (
    AnalysisOrchestrator,
    AnalysisOutcome,
    AnalysisStatus,
    Upstream,
)
from analysis_spine.orchestration.factory import build_cache, build_orchestrator, build_store
from analysis_spine.orchestration.operations import (
    DEFAULT_OPERATIONS,
    AnalysisContext,
    OperationSpec,
    validate_context,
)

__all__ = [
    "DEFAULT_OPERATIONS",
    "AnalysisContext",
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "AnalysisStatus",
    "OperationSpec",
    "Upstream",
    "build_cache",
    "build_orchestrator",
    "build_store",
    "validate_context",
]
