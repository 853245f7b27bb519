"""Byte sources an archive can be decoded from."""

from .http_source import HttpArchiveSource, open_archive_source

__all__ = ['HttpArchiveSource', 'open_archive_source']
