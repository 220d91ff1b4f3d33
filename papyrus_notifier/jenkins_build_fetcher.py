"""
Jenkins Build Fetcher Module

This module reads the record of the running build from the Jenkins REST API
and turns it into a BuildContext: result, start time, duration and the
change set of the build.

Data Flow:
    Jenkins Build → GET /job/<name>/<number>/api/json → fetch_build_context() → BuildContext

Invoked by: cli
Invokes: Jenkins REST API
"""

import logging
import time
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth

from .config_loader import Config
from .error_handler import ErrorHandler, RetryExhaustedError
from .models import BuildContext, BuildResult, CommitRecord

# Configure module logger
logger = logging.getLogger(__name__)


def job_path(job_name: str) -> str:
    """
    Build the URL path of a job, folder aware.

    Example:
        job_path("team/service") -> "job/team/job/service"
    """
    parts = [part for part in job_name.split('/') if part]
    return '/'.join(f"job/{quote(part, safe='')}" for part in parts)


def parse_change_set(build_info: Dict[str, Any]) -> List[CommitRecord]:
    """
    Convert the change set(s) of a Jenkins build record into CommitRecords.

    Freestyle builds expose ``changeSet``; pipelines expose a ``changeSets``
    list (one per checkout). Items keep their order.

    Args:
        build_info (Dict[str, Any]): Response of ``/api/json``

    Returns:
        List[CommitRecord]: Commits in source-control order
    """
    change_sets = build_info.get('changeSets')
    if change_sets is None:
        change_set = build_info.get('changeSet')
        change_sets = [change_set] if change_set else []

    commits = []
    for change_set in change_sets:
        for item in change_set.get('items') or []:
            author = item.get('author') or {}
            timestamp = item.get('timestamp')
            commits.append(CommitRecord(
                author=author.get('fullName', ''),
                email=item.get('authorEmail') or '',
                description=item.get('comment') or item.get('msg') or '',
                commit_hash=item.get('commitId') or '',
                # Jenkins reports milliseconds, -1 when unknown
                timestamp_seconds=int(timestamp) // 1000 if timestamp and timestamp > 0 else 0
            ))
    return commits


def build_context_from_record(
    build_info: Dict[str, Any],
    workspace: Union[str, Path],
    result_override: Optional[str] = None
) -> BuildContext:
    """
    Build a BuildContext from a Jenkins build record.

    Args:
        build_info (Dict[str, Any]): Response of ``/api/json``
        workspace (Union[str, Path]): Build workspace
        result_override (Optional[str]): Result reported by the caller; wins over the record,
            which is null while a pipeline is still running

    Returns:
        BuildContext: Context for UploadBuildNotifier.perform()
    """
    result = result_override if result_override else build_info.get('result')
    start_time_ms = int(build_info.get('timestamp') or 0)
    duration_ms = int(build_info.get('duration') or 0)

    if duration_ms == 0 and build_info.get('building') and start_time_ms:
        duration_ms = max(int(time.time() * 1000) - start_time_ms, 0)

    return BuildContext(
        number=int(build_info['number']),
        result=BuildResult.from_ci(result),
        start_time_ms=start_time_ms,
        duration_ms=duration_ms,
        workspace=Path(workspace),
        change_set=parse_change_set(build_info)
    )


def build_context_from_environment(
    build_number: int,
    result: str,
    workspace: Union[str, Path],
    started_at_ms: Optional[int] = None,
    duration_ms: Optional[int] = None
) -> BuildContext:
    """
    Build a BuildContext without the Jenkins API. No change set is available.

    Args:
        build_number (int): Build number
        result (str): CI result string
        workspace (Union[str, Path]): Build workspace
        started_at_ms (Optional[int]): Build start, defaults to now
        duration_ms (Optional[int]): Build duration, defaults to now - start

    Returns:
        BuildContext: Context with an empty change set
    """
    now_ms = int(time.time() * 1000)
    start = started_at_ms if started_at_ms is not None else now_ms
    duration = duration_ms if duration_ms is not None else max(now_ms - start, 0)
    return BuildContext(
        number=build_number,
        result=BuildResult.from_ci(result),
        start_time_ms=start,
        duration_ms=duration,
        workspace=Path(workspace)
    )


class JenkinsBuildFetcher:
    """
    Reads build records from the Jenkins REST API.

    Attributes:
        config (Config): Application configuration
        auth (HTTPBasicAuth): Jenkins API authentication
        error_handler (ErrorHandler): Retry handler for failed requests
    """

    def __init__(self, config: Config):
        """
        Initialize the Jenkins build fetcher.

        Args:
            config (Config): Application configuration with Jenkins settings

        Raises:
            ValueError: If Jenkins API access is not configured
        """
        if not config.jenkins_api_enabled:
            raise ValueError("Jenkins API access is not configured (JENKINS_URL, JENKINS_USER, JENKINS_API_TOKEN)")

        self.config = config
        self.jenkins_url = config.jenkins_url
        self.auth = HTTPBasicAuth(config.jenkins_user, config.jenkins_api_token)

        self.error_handler = ErrorHandler(
            max_retries=config.retry_attempts,
            base_delay=config.retry_delay
        )

        logger.info("Jenkins Build Fetcher initialized for: %s", self.jenkins_url)

    def fetch_build_info(self, job_name: str, build_number: int) -> Dict[str, Any]:
        """
        Fetch build metadata from Jenkins.

        Args:
            job_name (str): Name of the Jenkins job, folders separated by '/'
            build_number (int): Build number

        Returns:
            Dict[str, Any]: Build record including result, timestamp, duration and change sets

        Raises:
            RetryExhaustedError: If every attempt failed
        """
        url = f"{self.jenkins_url}/{job_path(job_name)}/{build_number}/api/json"
        logger.info("Fetching build info: %s", url)

        try:
            response = self.error_handler.retry_with_backoff(
                self._make_request,
                'GET',
                url,
                exceptions=(requests.exceptions.RequestException,)
            )
        except RetryExhaustedError as e:
            logger.error("Failed to fetch build info after retries: %s", e)
            raise

        build_info = response.json()
        logger.debug("Build info fetched: %s", build_info.get('result', 'UNKNOWN'))
        return build_info

    def fetch_build_context(
        self,
        job_name: str,
        build_number: int,
        workspace: Union[str, Path],
        result_override: Optional[str] = None
    ) -> BuildContext:
        """Fetch the build record and convert it into a BuildContext."""
        build_info = self.fetch_build_info(job_name, build_number)
        context = build_context_from_record(build_info, workspace, result_override)
        logger.info(
            "Build %s #%s: result=%s, %d commit(s)",
            job_name, build_number, context.result.value, len(context.change_set)
        )
        return context

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make an authenticated HTTP request to Jenkins API.

        Raises:
            requests.exceptions.RequestException: If request fails
        """
        timeout = kwargs.pop('timeout', 30)

        response = requests.request(
            method=method,
            url=url,
            auth=self.auth,
            timeout=timeout,
            **kwargs
        )

        response.raise_for_status()
        return response
