"""Report every application with the identifiers of the APIs it is subscribed to."""

from .config import ReportConfig
from .join import join_applications, join_documents
from .models import Application, ApplicationApis, Subscription
from .pipeline import build_pipeline, pipeline_to_mql
from .runner import list_application_apis, run_report

__all__ = [
    "Application",
    "ApplicationApis",
    "ReportConfig",
    "Subscription",
    "build_pipeline",
    "join_applications",
    "join_documents",
    "list_application_apis",
    "pipeline_to_mql",
    "run_report",
]
