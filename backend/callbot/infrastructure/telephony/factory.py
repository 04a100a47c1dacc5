"""
Call Control Factory
"""
import logging
from typing import Dict, Type

from callbot.core.config import Settings
from callbot.domain.interfaces.call_control import CallControlClient
from callbot.infrastructure.graph.auth import ClientCredentialTokenProvider
from callbot.infrastructure.graph.call_control_client import GraphCallControlClient
from callbot.infrastructure.telephony.simulated_client import SimulatedCallControlClient

logger = logging.getLogger(__name__)


class CallControlFactory:
    """Factory for creating call-control clients"""

    _providers: Dict[str, Type[CallControlClient]] = {
        "graph": GraphCallControlClient,
        "simulated": SimulatedCallControlClient,
    }

    @classmethod
    def create(cls, settings: Settings) -> CallControlClient:
        """
        Create the call-control client selected by settings.

        Outside production, a Graph provider without credentials falls back
        to the simulated client.
        """
        provider_name = settings.call_control_provider
        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown call control provider: {provider_name}. Available: {available}")

        if provider_name == "graph" and not settings.has_graph_credentials:
            if settings.environment == "production":
                raise ValueError("Graph credentials are required in production")
            logger.warning("Graph credentials not configured - calls will be simulated")
            provider_name = "simulated"

        if provider_name == "simulated":
            return SimulatedCallControlClient()

        token_provider = ClientCredentialTokenProvider(
            tenant_id=settings.tenant_id,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            timeout=settings.graph_timeout_seconds
        )
        return GraphCallControlClient(token_provider, timeout=settings.graph_timeout_seconds)

    @classmethod
    def list_providers(cls) -> list[str]:
        """List available providers"""
        return list(cls._providers.keys())
