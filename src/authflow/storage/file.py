"""JSON file credential store."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from authflow.models.errors import CredentialStoreError
from authflow.models.tokens import TokenResult
from authflow.storage.base import CredentialStore

logger = logging.getLogger(__name__)


class JsonFileCredentialStore(CredentialStore):
    """Stores the token as JSON in a file readable only by its owner."""

    def __init__(self, token_file: str | os.PathLike[str]):
        """Initialize the store.

        Args:
            token_file: Path of the JSON file; parent directories are
                created on first save
        """
        self.token_file = Path(token_file)

    def save(self, token: TokenResult) -> None:
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            # Create with restrictive permissions before writing secrets
            fd = os.open(self.token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token.model_dump_json(indent=2))
            self.token_file.chmod(0o600)
        except OSError as e:
            raise CredentialStoreError(
                f"Failed to save tokens to {self.token_file}: {e}"
            ) from e

        logger.debug(f"Saved tokens to {self.token_file}")

    def load(self) -> TokenResult | None:
        if not self.token_file.exists():
            logger.debug(f"No token file at {self.token_file}")
            return None

        try:
            return TokenResult.model_validate_json(self.token_file.read_text("utf-8"))
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load tokens from {self.token_file}: {e}")
            return None

    def clear(self) -> None:
        try:
            self.token_file.unlink(missing_ok=True)
        except OSError as e:
            raise CredentialStoreError(
                f"Failed to remove token file {self.token_file}: {e}"
            ) from e
        logger.debug(f"Cleared tokens at {self.token_file}")
