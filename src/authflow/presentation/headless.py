from authflow.models.errors import ConfigurationError
from authflow.presentation.base import PresentationAdapter


class HeadlessPresentationAdapter(PresentationAdapter):
    """Adapter for non-interactive grants such as client credentials.

    There is nobody to show a URL to, so an interactive grant configured
    with this adapter fails its attempt with a ConfigurationError.
    """

    async def present(self, url: str) -> str | None:
        raise ConfigurationError(
            "Interactive authorization requires a presentation adapter"
        )

    def dismiss(self) -> None:
        pass
