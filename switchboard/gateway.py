"""Provider Routing Gateway.

One ``send_message`` call validates the request, translates it for the
resolved provider, dispatches exactly one HTTP call and normalizes the
reply. Nothing is retried here: retryable failures are reported as such
and the caller decides.
"""

import dataclasses
import logging
import time
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Union

import httpx

from .errors import (
    AuthError,
    CapabilityMismatch,
    ProviderError,
    RateLimited,
    SwitchboardError,
    TransientProviderError,
    UnsupportedProvider,
)
from .messages import ConversationMessage, coerce_messages, has_image_content
from .models import ModelDescriptor, ProviderKind, VISION_CAPABILITIES, resolve_provider
from .providers.base import BaseProvider, ProviderConfig, SendOptions
from .providers.registry import discover_providers, get_registry, missing_providers
from .providers.response import ProviderResponse

_log = logging.getLogger(__name__)

_BODY_LIMIT = 2000


class Phase(str, Enum):
    """Per-invocation progress of send_message."""

    VALIDATING = "validating"
    DISPATCHING = "dispatching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given as seconds or as an HTTP date."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, when.timestamp() - time.time())


def classify_http_error(exc: Exception, provider: str = "") -> ProviderError:
    """Map an httpx failure onto the provider error taxonomy."""
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = response.status_code
        body = response.text[:_BODY_LIMIT]
        if status == 401:
            return AuthError(
                f"{provider} rejected the credentials (401)",
                status=status, body=body, provider=provider,
            )
        if status == 429:
            return RateLimited(
                f"{provider} rate limit hit (429)",
                status=status, body=body, provider=provider,
                retry_after=_retry_after(response.headers.get("retry-after")),
            )
        if status == 408 or status >= 500:
            return TransientProviderError(
                f"{provider} is temporarily unavailable ({status})",
                status=status, body=body, provider=provider,
            )
        return ProviderError(
            f"{provider} request failed ({status})",
            status=status, body=body, provider=provider,
        )
    if isinstance(exc, httpx.TimeoutException):
        return TransientProviderError(f"{provider} request timed out", provider=provider)
    if isinstance(exc, httpx.TransportError):
        return TransientProviderError(f"{provider} is unreachable: {exc}", provider=provider)
    return ProviderError(f"{provider} request failed: {exc}", provider=provider)


class ProviderGateway:
    """Routes conversations to one provider transport per ProviderKind.

    ``providers`` holds only the kinds that are configured; a supported
    kind without an entry is reported as not configured.
    """

    def __init__(self, providers: Mapping[ProviderKind, BaseProvider]):
        self._providers = dict(providers)

    @classmethod
    def from_config(
        cls,
        configs: Mapping[Union[ProviderKind, str], ProviderConfig],
        client: Optional[httpx.Client] = None,
    ) -> "ProviderGateway":
        """Build a gateway for the configured providers.

        Every ProviderKind must have a registered implementation, otherwise
        the gateway refuses to start.
        """
        discover_providers()
        missing = missing_providers()
        if missing:
            raise SwitchboardError(
                "No provider implementation for: " + ", ".join(k.value for k in missing)
            )

        registry = get_registry()
        providers = {}
        for key, config in configs.items():
            kind = resolve_provider(key)
            if kind is None:
                _log.warning("Ignoring config for unknown provider %r", key)
                continue
            providers[kind] = registry[kind](config, client=client)
        return cls(providers)

    @property
    def available(self) -> list[ProviderKind]:
        return [kind for kind in ProviderKind if kind in self._providers]

    def get_provider(self, kind: ProviderKind) -> Optional[BaseProvider]:
        return self._providers.get(kind)

    def _resolve(self, model: Union[ModelDescriptor, dict, None]) -> tuple[ModelDescriptor, BaseProvider]:
        if model is None:
            raise UnsupportedProvider("No model given")
        if isinstance(model, dict):
            model = ModelDescriptor.from_dict(model)

        kind = model.kind
        if kind is None:
            raise UnsupportedProvider(f"Unsupported provider: {model.provider!r}")
        provider = self._providers.get(kind)
        if provider is None:
            raise UnsupportedProvider(f"Provider {kind.value} is not configured")
        return model, provider

    def _select_tools(self, provider: BaseProvider, model: ModelDescriptor, tools: Sequence) -> list:
        if not tools:
            return []
        if not provider.supports_tools:
            _log.info("Dropping %d tool(s): %s cannot declare tools", len(tools), provider.kind.value)
            return []
        if not model.supports_tools:
            _log.info("Dropping %d tool(s): %s has no tool-calling capability", len(tools), model.id)
            return []
        return list(tools)

    def send_message(
        self,
        messages: Iterable[Union[ConversationMessage, dict]],
        model: Union[ModelDescriptor, dict, None],
        options: Optional[SendOptions] = None,
    ) -> ProviderResponse:
        """Send one conversation to the model's provider and normalize the reply.

        Raises UnsupportedProvider or CapabilityMismatch before any network
        call, and AuthError, RateLimited, TransientProviderError or
        ProviderError when the call itself fails.
        """
        options = options or SendOptions()
        phase = Phase.VALIDATING
        _log.debug("send_message: %s", phase.value)

        try:
            model, provider = self._resolve(model)
            conversation = coerce_messages(messages)
            if has_image_content(conversation) and not model.supports_vision:
                raise CapabilityMismatch(
                    f"Model {model.id or model.provider} cannot read images; needs one of "
                    + ", ".join(sorted(VISION_CAPABILITIES))
                )
            tools = self._select_tools(provider, model, options.tools)
            request = provider.build_request(model, conversation, tools, options)

            phase = Phase.DISPATCHING
            _log.debug("send_message: %s to %s (%s)", phase.value, provider.kind.value, model.id)
            started = time.monotonic()
            try:
                data = provider.send(request, timeout=options.timeout)
            except httpx.HTTPError as e:
                raise classify_http_error(e, provider.kind.value) from e
            latency_ms = (time.monotonic() - started) * 1000

            try:
                response = provider.parse_response(data, model, request.tool_names)
            except (AttributeError, KeyError, IndexError, TypeError) as e:
                raise ProviderError(
                    f"{provider.kind.value} returned an unexpected response shape",
                    body=str(data)[:_BODY_LIMIT],
                    provider=provider.kind.value,
                ) from e
        except SwitchboardError as e:
            _log.debug("send_message: %s(%s) during %s", Phase.FAILED.value, e.kind, phase.value)
            if isinstance(e, ProviderError):
                _log.warning("%s", e.message)
            raise

        _log.debug("send_message: %s in %.0f ms", Phase.SUCCEEDED.value, latency_ms)
        return dataclasses.replace(response, latency_ms=latency_ms)

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()
