"""API routers, mounted under ``/api/v1`` by :func:`~analysis_spine.api.app.create_app`."""
