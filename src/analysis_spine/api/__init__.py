"""HTTP surface for the analysis orchestrator.

Example::

    from analysis_spine.api import create_app

    app = create_app(upstream=call_provider)
"""

from analysis_spine.api.app import create_app

__all__ = ["create_app"]
