"""Timeline synchronization and progress analytics for event workspaces."""

from .milestones import generate_milestones
from .alignment import align_tasks, match_milestone, realign_tasks
from .progress import build_progress_report
from .critical_path import estimate_critical_path
from .risk import detect_risks
from .template_match import match_template, recommend_templates

__all__ = [
    "generate_milestones",
    "match_milestone",
    "align_tasks",
    "realign_tasks",
    "build_progress_report",
    "estimate_critical_path",
    "detect_risks",
    "match_template",
    "recommend_templates",
]
