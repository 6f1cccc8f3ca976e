"""YAML codec for annotation files.

Files are plain block-style YAML without type tags, so they read well in
diffs and can be edited by hand. Loading is lenient: unknown keys are
ignored, missing keys are defaulted, and an empty or absent file is an
empty collection.
"""

from __future__ import annotations

import yaml
from pydantic import ValidationError

from annostore.errors import CodecError
from annostore.models import GroupStorage, TagStorage


class YamlCodec[S: (GroupStorage, TagStorage)]:
    """Converts one collection type to and from YAML bytes."""

    def __init__(self, model: type[S]) -> None:
        self._model = model

    @property
    def model(self) -> type[S]:
        return self._model

    def empty(self) -> S:
        return self._model()

    def load(self, data: bytes | str | None) -> S:
        """Decode a document.

        Raises:
            CodecError: If the text is not YAML, its root is not a mapping,
                or it fails validation.
        """
        if data is None or not data.strip():
            return self.empty()
        try:
            document = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            msg = f"Invalid YAML in {self._model.__name__} document: {exc}"
            raise CodecError(msg) from exc

        if document is None:
            return self.empty()
        if not isinstance(document, dict):
            msg = (
                f"{self._model.__name__} document must be a mapping, "
                f"got {type(document).__name__}"
            )
            raise CodecError(msg)

        try:
            return self._model.model_validate(document)
        except ValidationError as exc:
            msg = f"Invalid {self._model.__name__} document: {exc}"
            raise CodecError(msg) from exc

    def dump(self, storage: S) -> bytes:
        """Encode a collection as deterministic UTF-8 YAML."""
        text = yaml.safe_dump(
            storage.to_document(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=2,
        )
        return text.encode("utf-8")


GROUP_CODEC = YamlCodec(GroupStorage)
TAG_CODEC = YamlCodec(TagStorage)
