"""Run pipeline services package."""

from codez.services.comments import CommentService, truncate_output
from codez.services.event_classifier import classify_event, extract_text
from codez.services.event_processor import process_event
from codez.services.file_state import capture_file_state, detect_changes
from codez.services.git import GitCli, clone_repository
from codez.services.github_client import GitHubClient, RequestCache
from codez.services.prompt_builder import PreparedPrompt, prepare_prompt
from codez.services.result_publisher import ResultPublisher
from codez.services.run_orchestrator import RunOrchestrator

__all__ = [
    'CommentService',
    'truncate_output',
    'classify_event',
    'extract_text',
    'process_event',
    'capture_file_state',
    'detect_changes',
    'GitCli',
    'clone_repository',
    'GitHubClient',
    'RequestCache',
    'PreparedPrompt',
    'prepare_prompt',
    'ResultPublisher',
    'RunOrchestrator'
]
