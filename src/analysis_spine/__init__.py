"""
analysis-spine - request orchestration for expensive AI analysis calls.

Every analysis request runs through the same gate: validate the context,
serve a fresh cached result if there is one, otherwise check the per-user,
burst and per-IP limits, then call the provider with bounded retries and
cache the success.

Packages:
    analysis_spine.core           Errors, classifier, caches, settings, logging
    analysis_spine.execution      Rate limiter, retry/backoff, per-attempt timeouts
    analysis_spine.orchestration  AnalysisOrchestrator and its composition root
    analysis_spine.api            FastAPI surface
    analysis_spine.cli            ``analysis-spine`` command
"""

__version__ = "0.1.0"
