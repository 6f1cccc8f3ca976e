"""Durable storage of annotation collections."""

from annostore.persistence.codec import GROUP_CODEC, TAG_CODEC, YamlCodec
from annostore.persistence.files import ConfigFolder, ProjectLocator, WorkspaceLocator

__all__ = [
    "GROUP_CODEC",
    "TAG_CODEC",
    "ConfigFolder",
    "ProjectLocator",
    "WorkspaceLocator",
    "YamlCodec",
]
