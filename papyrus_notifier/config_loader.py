"""
Configuration Loader Module

This module handles loading and validating the notifier configuration from
environment variables. Jenkins exports JOB_NAME, BUILD_NUMBER and WORKSPACE
to every build step; the PAPYRUS_* settings come from the job (credentials
binding, environment block or a .env file applied by the CLI).

Data Flow:
    Environment Variables → ConfigLoader.load() → Config → UploadBuildNotifier / JenkinsBuildFetcher

Module Dependencies:
    - os: For reading environment variables
    - typing: For type hints
    - models: For MetadataEntry parsing
"""

import os
from typing import Optional, List
from dataclasses import dataclass, field

from .models import MetadataEntry

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@dataclass
class Config:
    """
    Configuration data class holding all notifier settings.

    Attributes:
        papyrus_url (str): Papyrus base URL, without trailing slash
        papyrus_access_token (str): Pre-encoded token sent as ``Authorization: Basic <token>``
        project (str): Papyrus project name
        version (str): Project version the builds belong to
        file_name (str): Artifact path relative to the workspace
        post_script (Optional[str]): Shell command run after a successful upload
        metadata (List[MetadataEntry]): Metadata attached to every build, in configuration order
        request_timeout (Optional[float]): Timeout for papyrus requests, None for no timeout
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_output_dir (Optional[str]): Directory for application.log, None for console only
        jenkins_url (Optional[str]): Jenkins URL, enables reading the build record over the API
        jenkins_user (Optional[str]): Jenkins user for API authentication
        jenkins_api_token (Optional[str]): Jenkins API token
        job_name (Optional[str]): Jenkins job name (folders separated by '/')
        build_number (Optional[int]): Jenkins build number
        workspace (str): Build workspace directory
        retry_attempts (int): Retries for Jenkins API reads
        retry_delay (int): Base delay in seconds between Jenkins API retries
    """
    papyrus_url: str
    papyrus_access_token: str
    project: str
    version: str
    file_name: str
    post_script: Optional[str] = None
    metadata: List[MetadataEntry] = field(default_factory=list)
    request_timeout: Optional[float] = None
    log_level: str = 'INFO'
    log_output_dir: Optional[str] = None
    jenkins_url: Optional[str] = None
    jenkins_user: Optional[str] = None
    jenkins_api_token: Optional[str] = None
    job_name: Optional[str] = None
    build_number: Optional[int] = None
    workspace: str = '.'
    retry_attempts: int = 3
    retry_delay: int = 2

    @property
    def jenkins_api_enabled(self) -> bool:
        """True when the build record can be read from the Jenkins API."""
        return bool(self.jenkins_url and self.jenkins_user and self.jenkins_api_token)


def parse_metadata(value: Optional[str]) -> List[MetadataEntry]:
    """
    Parse a comma-separated ``key=value`` list.

    Raises:
        ValueError: If an item is not key=value
    """
    if not value:
        return []
    return [MetadataEntry.parse(item) for item in value.split(',') if item.strip()]


class ConfigLoader:
    """
    Configuration loader and validator.

    Usage:
        config = ConfigLoader.load()
        print(config.papyrus_url)
    """

    REQUIRED = {
        'PAPYRUS_URL': 'papyrus_url',
        'PAPYRUS_ACCESS_TOKEN': 'papyrus_access_token',
        'PAPYRUS_PROJECT': 'project',
        'PAPYRUS_VERSION': 'version',
        'PAPYRUS_FILE_NAME': 'file_name',
    }

    @staticmethod
    def load() -> Config:
        """
        Load configuration from environment variables.

        Returns:
            Config: Configuration object with all settings

        Raises:
            ValueError: If a required variable is missing or a value is invalid

        Environment Variables:
            Required:
                - PAPYRUS_URL: Papyrus base URL
                - PAPYRUS_ACCESS_TOKEN: Papyrus access token
                - PAPYRUS_PROJECT: Project name
                - PAPYRUS_VERSION: Project version
                - PAPYRUS_FILE_NAME: Artifact path relative to the workspace

            Optional:
                - PAPYRUS_POST_SCRIPT: Shell command run after upload
                - PAPYRUS_METADATA: Comma-separated key=value pairs
                - PAPYRUS_TIMEOUT: Request timeout in seconds (default: none)
                - LOG_LEVEL: Logging level (default: INFO)
                - LOG_OUTPUT_DIR: Directory for application.log (default: console only)
                - JENKINS_URL, JENKINS_USER, JENKINS_API_TOKEN: Jenkins API access
                - JOB_NAME, BUILD_NUMBER, WORKSPACE: Set by Jenkins for every build
                - RETRY_ATTEMPTS: Jenkins API retries (default: 3)
                - RETRY_DELAY: Delay between Jenkins API retries in seconds (default: 2)
        """
        values = {}
        for env_name, attr in ConfigLoader.REQUIRED.items():
            value = (os.getenv(env_name) or '').strip()
            if not value:
                raise ValueError(f"{env_name} environment variable is required")
            values[attr] = value

        # Remove trailing slash from papyrus URL if present
        values['papyrus_url'] = values['papyrus_url'].rstrip('/')

        post_script = os.getenv('PAPYRUS_POST_SCRIPT') or None

        try:
            metadata = parse_metadata(os.getenv('PAPYRUS_METADATA'))
        except ValueError as e:
            raise ValueError(f"Invalid PAPYRUS_METADATA: {e}") from e

        request_timeout = None
        timeout_str = os.getenv('PAPYRUS_TIMEOUT')
        if timeout_str:
            try:
                request_timeout = float(timeout_str)
            except ValueError as e:
                raise ValueError(f"Invalid PAPYRUS_TIMEOUT: {timeout_str}. Must be a number of seconds") from e
            if request_timeout < 1 or request_timeout > 3600:
                raise ValueError(f"Invalid PAPYRUS_TIMEOUT: {timeout_str}. Must be between 1 and 3600 seconds")

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        log_output_dir = os.getenv('LOG_OUTPUT_DIR') or None

        # Jenkins configuration
        jenkins_url = os.getenv('JENKINS_URL')
        if jenkins_url:
            jenkins_url = jenkins_url.strip().rstrip('/')
        jenkins_user = os.getenv('JENKINS_USER') or None
        jenkins_api_token = os.getenv('JENKINS_API_TOKEN') or None

        job_name = os.getenv('JOB_NAME') or None
        build_number_str = os.getenv('BUILD_NUMBER')
        build_number = None
        if build_number_str:
            try:
                build_number = int(build_number_str)
            except ValueError as e:
                raise ValueError(f"Invalid BUILD_NUMBER: {build_number_str}. Must be an integer") from e

        workspace = os.getenv('WORKSPACE') or '.'
        retry_attempts = int(os.getenv('RETRY_ATTEMPTS', '3'))
        retry_delay = int(os.getenv('RETRY_DELAY', '2'))

        config = Config(
            post_script=post_script,
            metadata=metadata,
            request_timeout=request_timeout,
            log_level=log_level,
            log_output_dir=log_output_dir,
            jenkins_url=jenkins_url,
            jenkins_user=jenkins_user,
            jenkins_api_token=jenkins_api_token,
            job_name=job_name,
            build_number=build_number,
            workspace=workspace,
            retry_attempts=retry_attempts,
            retry_delay=retry_delay,
            **values
        )
        ConfigLoader.validate(config)
        return config

    @staticmethod
    def validate(config: Config) -> bool:
        """
        Validate configuration settings.

        Args:
            config (Config): Configuration object to validate

        Returns:
            bool: True if configuration is valid

        Raises:
            ValueError: If configuration is invalid
        """
        if not config.papyrus_url.startswith(('http://', 'https://')):
            raise ValueError(f"Invalid PAPYRUS_URL: {config.papyrus_url}. Must start with http:// or https://")

        if config.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {config.log_level}. Must be one of {VALID_LOG_LEVELS}")

        if config.retry_attempts < 0:
            raise ValueError("RETRY_ATTEMPTS cannot be negative")
        if config.retry_delay < 0:
            raise ValueError("RETRY_DELAY cannot be negative")

        # Jenkins exports JENKINS_URL to every build; credentials opt into API access
        if (config.jenkins_user or config.jenkins_api_token) and not config.jenkins_api_enabled:
            raise ValueError("JENKINS_URL, JENKINS_USER and JENKINS_API_TOKEN must be set together")
        if config.jenkins_url and not config.jenkins_url.startswith(('http://', 'https://')):
            raise ValueError(f"Invalid JENKINS_URL: {config.jenkins_url}. Must start with http:// or https://")

        return True
