from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..utils.errors import ApiError, ReveError, wrap_error
from ..utils.http_client import HttpClient

logger = logging.getLogger("reve.projects")

_NO_PROJECTS_HINT = (
    "No projects found. Please provide a projectId in the options. You can find your project ID "
    'in the browser network tab when making requests to "/api/project/{projectId}/generation".'
)
_NOT_FOUND_HINT = (
    "Cannot auto-detect project ID. The /api/projects endpoint was not found. Please provide a "
    "projectId in the options. You can find your project ID in the browser network tab when "
    "making generation requests."
)


class ProjectResolver:
    """Resolves the project every generation is filed under."""

    def __init__(self, client: HttpClient, project_id: Optional[str] = None) -> None:
        self._client = client
        self._explicit = project_id or None
        self._detected: Optional[str] = None

    async def get_project_id(self) -> str:
        if self._explicit:
            return self._explicit
        if self._detected:
            return self._detected

        try:
            response = await self._client.get("/api/projects")
            projects = response.json()
        except ReveError:
            raise
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise ApiError(_NOT_FOUND_HINT, status_code=404) from exc
            raise wrap_error(exc, "getting project ID") from exc
        except Exception as exc:
            raise wrap_error(exc, "getting project ID") from exc

        if isinstance(projects, list) and projects and isinstance(projects[0], dict) and projects[0].get("id"):
            self._detected = str(projects[0]["id"])
            logger.info("Auto-detected project %s", self._detected)
            return self._detected

        raise ApiError(_NO_PROJECTS_HINT)
