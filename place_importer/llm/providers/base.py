"""Provider interface used by extraction and place generation."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from place_importer.llm.config import LLMConfig
from place_importer.llm.providers.types import GenerateConfig, LLMInput, LLMResponse

ClientType = TypeVar("ClientType")
ConfigType = TypeVar("ConfigType", bound=LLMConfig)


class BaseLLMProvider(ABC, Generic[ClientType, ConfigType]):
    """A chat model reachable through one client.

    Subclasses supply the client, the API key lookup and ``generate``.
    Failures of any kind surface from ``generate`` as ``ValueError``.
    """

    def __init__(
        self,
        config: ConfigType,
        api_key: str | None = None,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.config = config
        self._api_key = api_key
        self._base_url = base_url
        self._headers = dict(headers or {})

    @property
    def model_name(self) -> str:
        return self.config.model_name

    @property
    @abstractmethod
    def api_key(self) -> str | None:
        """The key used to authenticate, or None when unconfigured."""

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @property
    def headers(self) -> dict[str, str]:
        return self._headers

    @property
    def runs_locally(self) -> bool:
        """Whether generation runs on this machine.

        Remote providers are the higher-cost compute path.
        """
        return False

    @property
    def supports_structured_output(self) -> bool:
        return self.config.supports_structured

    @property
    @abstractmethod
    def model(self) -> ClientType:
        """The lazily created client."""

    @abstractmethod
    async def generate(
        self,
        prompt: LLMInput,
        config: GenerateConfig | None = None,
        format: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Complete a prompt.

        Args:
            prompt: Plain text or a list of chat messages
            config: Per-request sampling overrides
            format: JSON schema constraining the reply

        Raises:
            ValueError: If generation fails
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_name='{self.model_name}')"
