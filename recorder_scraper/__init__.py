"""
County recorder scraper: drives a recorder website through its search-and-export
workflow, captures the exported document and stores it.
"""

from .config import Settings
from .date_formatter import DateFormatter, window_for
from .models import ScrapeConfig, ScrapeResult, WorkflowStep
from .orchestrator import ScrapeOrchestrator
from .resolver import ActionResolver, ScriptedSemanticResolver, SemanticResolver
from .sites import SITES, get_site

__all__ = [
    'ActionResolver',
    'DateFormatter',
    'SITES',
    'ScrapeConfig',
    'ScrapeOrchestrator',
    'ScrapeResult',
    'ScriptedSemanticResolver',
    'SemanticResolver',
    'Settings',
    'WorkflowStep',
    'get_site',
    'window_for',
]
