from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..config import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings
from ..schemas.generation import BatchResult, EditRequest, EditResult, GenerationRequest
from ..utils.errors import InvalidRequestError, ReveError, wrap_error
from ..utils.http_client import HttpClient
from ..utils.session import ReveSession
from .orchestrator import BatchOrchestrator
from .poller import GenerationPoller
from .projects import ProjectResolver
from .prompt_enhancer import PromptEnhancer

logger = logging.getLogger("reve.client")


def _build(model, request, kwargs, default_model):
    if request is not None:
        if "model" not in request.model_fields_set:
            request = request.model_copy(update={"model": default_model})
        return request
    kwargs.setdefault("model", default_model)
    try:
        return model(**kwargs)
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid {model.__name__}: {exc.errors()}") from exc


class ReveAI:
    """Unofficial client for the Reve image generation service.

    Owns one session, one HTTP client and the services built on top of it.
    Use as an async context manager or call ``aclose`` when done.
    """

    def __init__(
        self,
        authorization: Optional[str] = None,
        cookie: Optional[str] = None,
        *,
        project_id: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_ms: int = 30000,
        max_polling_attempts: int = 60,
        polling_interval_ms: int = 2000,
        verbose: bool = False,
        custom_headers: Optional[Mapping[str, str]] = None,
        default_model: str = DEFAULT_MODEL,
        enhancer_model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=None,
    ) -> None:
        self.session = ReveSession.from_credentials(authorization, cookie)
        self.verbose = verbose
        self.default_model = default_model
        if verbose:
            logging.getLogger("reve").setLevel(logging.DEBUG)

        extra = {"sleep": sleep} if sleep is not None else {}
        self._http = HttpClient(
            self.session,
            base_url,
            timeout=timeout_ms / 1000.0,
            custom_headers=custom_headers,
            verbose=verbose,
            transport=transport,
            **extra,
        )
        self.projects = ProjectResolver(self._http, project_id)
        enhancer_kwargs = {"model_id": enhancer_model} if enhancer_model else {}
        self.enhancer = PromptEnhancer(self._http, self.projects, **enhancer_kwargs)

        def new_poller() -> GenerationPoller:
            return GenerationPoller(
                self._http,
                max_attempts=max_polling_attempts,
                interval=polling_interval_ms / 1000.0,
                **extra,
            )

        self.orchestrator = BatchOrchestrator(self._http, self.projects, self.enhancer, new_poller)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ReveAI":
        return cls(
            settings.authorization,
            settings.cookie,
            project_id=settings.project_id,
            base_url=settings.base_url,
            timeout_ms=settings.timeout_ms,
            max_polling_attempts=settings.max_polling_attempts,
            polling_interval_ms=settings.polling_interval_ms,
            verbose=settings.verbose,
            custom_headers=settings.custom_headers,
            default_model=settings.default_model,
            enhancer_model=settings.enhancer_model,
            **kwargs,
        )

    @property
    def token(self) -> Optional[str]:
        return self.session.token

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id

    async def generate_image(self, request: Optional[GenerationRequest] = None, **kwargs: Any) -> BatchResult:
        request = _build(GenerationRequest, request, kwargs, self.default_model)
        try:
            return await self.orchestrator.generate(request)
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "generating image") from exc

    async def edit_image(self, request: Optional[EditRequest] = None, **kwargs: Any) -> EditResult:
        request = _build(EditRequest, request, kwargs, self.default_model)
        try:
            return await self.orchestrator.edit(request)
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "editing image") from exc

    async def enhance_prompt(self, prompt: str, variant_count: int = 4) -> List[str]:
        return await self.enhancer.enhance(prompt, variant_count)

    async def aclose(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> "ReveAI":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
