"""
Build Publisher Module

This module publishes a finished build to papyrus in two steps:

1. CreateBuild: POST the build description as JSON and receive a single-use
   state key identifying a pending upload slot.
2. UploadArtifact: POST the artifact file as multipart form data, tagged
   with that state key.

The upload only happens when CreateBuild succeeded and the CI build itself
succeeded. Failed CI builds are still recorded for auditing, without an
artifact. Nothing is retried: the state key is single use and papyrus
rejects a second CreateBuild for the same build.

The multipart ``file`` part is named with the artifact's basename, so a
configured file name such as ``build/libs/app.jar`` reaches papyrus as
``app.jar``.

Data Flow:
    BuildDescriptor → to_payload() → POST /v2/create → stateKey →
    read artifact → POST /v2/create/upload → PostUploadAction → PublishOutcome

Module Dependencies:
    - requests: For HTTP POST requests
    - json: For response parsing
    - logging: For build output
    - time: For duration tracking
    - error_handler: For the publish error taxonomy
"""

import json
import logging
import time
from contextlib import closing
from pathlib import Path
from typing import Optional, Union

import requests

from .error_handler import (
    PublishError,
    NetworkError,
    ProtocolError,
    EmptyResponseError,
    LocalFileMissingError,
    DeserializationError,
    ServerError,
)
from .models import BuildDescriptor, BuildResult, PublishOutcome, PublishPhase, PublishState
from .post_action import PostUploadAction

# Configure module logger
logger = logging.getLogger(__name__)

CREATE_PATH = "/v2/create"
UPLOAD_PATH = "/v2/create/upload"


def normalize_base_url(url: str) -> str:
    """Trim whitespace and every trailing slash from a base URL."""
    return url.strip().rstrip('/')


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


class BuildPublisher:
    """
    Two-phase papyrus client.

    A BuildPublisher holds no per-build state; every publish() call performs
    its own requests, so one instance may be reused across builds.

    Attributes:
        timeout (Optional[float]): Per-request timeout in seconds, None for the transport default
        post_action (Optional[PostUploadAction]): Command run after a successful upload
    """

    def __init__(self, timeout: Optional[float] = None, post_action: Optional[PostUploadAction] = None):
        self.timeout = timeout
        self.post_action = post_action

    def publish(
        self,
        descriptor: BuildDescriptor,
        artifact_path: Union[str, Path],
        credentials: str,
        endpoint_base_url: str
    ) -> PublishOutcome:
        """
        Publish one build.

        Args:
            descriptor (BuildDescriptor): Build description sent in CreateBuild
            artifact_path (Union[str, Path]): Artifact file to upload
            credentials (str): Pre-encoded token, sent verbatim as ``Authorization: Basic <credentials>``
            endpoint_base_url (str): Papyrus base URL, trailing slashes are ignored

        Returns:
            PublishOutcome: Success (uploaded or skipped) or failure with the failing phase.
            Errors are reported through the outcome, never raised.
        """
        base_url = normalize_base_url(endpoint_base_url)
        phase = PublishPhase.CREATE_BUILD
        self._transition(PublishState.IDLE, PublishState.CREATING_BUILD)

        try:
            state_key = self._create_build(descriptor, credentials, base_url)
            self._transition(PublishState.CREATING_BUILD, PublishState.BUILD_CREATED)

            if descriptor.result is not BuildResult.SUCCESS:
                self._transition(PublishState.BUILD_CREATED, PublishState.SKIPPED_UPLOAD)
                logger.info("Not uploading build file since build failed.")
                return PublishOutcome.success(uploaded=False)

            phase = PublishPhase.UPLOAD_ARTIFACT
            self._transition(PublishState.BUILD_CREATED, PublishState.UPLOADING)
            self._upload_artifact(state_key, Path(artifact_path), credentials, base_url)

        except PublishError as e:
            failed_phase = e.phase or phase
            if failed_phase is PublishPhase.CREATE_BUILD:
                self._transition(PublishState.CREATING_BUILD, PublishState.CREATE_FAILED)
            else:
                self._transition(PublishState.UPLOADING, PublishState.UPLOAD_FAILED)
            logger.error(
                "[%s] %s failed: %s",
                e.status_code if e.status_code is not None else '-', failed_phase.value, e.message,
                extra={
                    'phase': failed_phase.value,
                    'status_code': e.status_code,
                    'error_type': type(e).__name__
                }
            )
            return PublishOutcome.failure(failed_phase, e.message, type(e).__name__)

        self._transition(PublishState.UPLOADING, PublishState.UPLOADED)
        logger.info("Successfully uploaded this build to papyrus")

        exit_code = self.post_action.run() if self.post_action else None
        return PublishOutcome.success(uploaded=True, post_action_exit_code=exit_code)

    def _create_build(self, descriptor: BuildDescriptor, credentials: str, base_url: str) -> str:
        """
        POST the build description and return the state key.

        Raises:
            NetworkError, ProtocolError, EmptyResponseError, DeserializationError
        """
        phase = PublishPhase.CREATE_BUILD
        headers = {
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/json"
        }
        payload = descriptor.to_payload()
        logger.debug("CreateBuild payload:\n%s", json.dumps(payload, indent=2))

        with closing(self._post(phase, base_url + CREATE_PATH, headers=headers, json=payload)) as response:
            status = response.status_code
            if not _is_success(response):
                message = self._create_error_message(response)
                if message == ServerError.BUILD_ALREADY_EXISTS:
                    logger.warning(
                        "Build %s #%s is already recorded in papyrus for version %s",
                        descriptor.project, descriptor.build, descriptor.version
                    )
                raise ProtocolError(message, phase=phase, status_code=status)
            if not response.content:
                raise EmptyResponseError(phase=phase, status_code=status)

            try:
                state_key = json.loads(response.text)["stateKey"]
            except (ValueError, KeyError, TypeError) as e:
                raise DeserializationError(
                    f"invalid CreateBuild response: {e}", phase=phase, status_code=status
                ) from e

        if not isinstance(state_key, str) or not state_key:
            raise DeserializationError("invalid CreateBuild response: stateKey is not a string", phase=phase)

        logger.info("[%d] Build %s #%s created", status, descriptor.project, descriptor.build)
        return state_key

    def _upload_artifact(self, state_key: str, artifact_path: Path, credentials: str, base_url: str) -> None:
        """
        Upload the artifact bound to ``state_key``.

        Raises:
            LocalFileMissingError, PublishError, NetworkError, ProtocolError, EmptyResponseError
        """
        phase = PublishPhase.UPLOAD_ARTIFACT
        if not artifact_path.is_file():
            logger.error(
                "File does not exist at '%s'. Did something break?", artifact_path,
                extra={'phase': phase.value, 'path': str(artifact_path)}
            )
            raise LocalFileMissingError(str(artifact_path), phase=phase)

        try:
            with open(artifact_path, 'rb') as fh:
                content = fh.read()
        except OSError as e:
            raise PublishError(f"couldn't read file: {e}", phase=phase) from e

        logger.info("Uploading %s (%d bytes)", artifact_path.name, len(content))

        headers = {"Authorization": f"Basic {credentials}"}
        with closing(self._post(
            phase,
            base_url + UPLOAD_PATH,
            headers=headers,
            data={"stateKey": state_key},
            files={"file": (artifact_path.name, content)}
        )) as response:
            status = response.status_code
            if not _is_success(response):
                message = response.text.strip() if response.content else "empty response body"
                raise ProtocolError(message[:1000], phase=phase, status_code=status)
            if not response.content:
                raise EmptyResponseError(phase=phase, status_code=status)

        logger.info("[%d] Artifact uploaded", status)

    def _post(self, phase: PublishPhase, url: str, **kwargs) -> requests.Response:
        """
        Send one POST, mapping transport failures to NetworkError.

        Raises:
            NetworkError: If no response was received
        """
        start_time = time.time()
        try:
            response = requests.post(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.debug("POST %s failed after %dms", url, duration_ms, exc_info=True)
            raise NetworkError(f"request to {url} failed: {e}", phase=phase) from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            "POST %s -> %s",
            url, response.status_code,
            extra={'phase': phase.value, 'status_code': response.status_code, 'duration_ms': duration_ms}
        )
        return response

    @staticmethod
    def _create_error_message(response: requests.Response) -> str:
        """Read ``{"error": ...}`` from a failed CreateBuild response, or a generic message."""
        try:
            error = json.loads(response.text)["error"]
        except (ValueError, KeyError, TypeError):
            error = None
        if isinstance(error, str) and error:
            return error
        return f"failed to create build (HTTP {response.status_code})"

    @staticmethod
    def _transition(current: PublishState, new: PublishState) -> None:
        logger.debug("Publish state %s -> %s", current.value, new.value)
