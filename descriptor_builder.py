# descriptor_builder.py
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from constants import DESCRIPTOR_CREATOR, DESCRIPTOR_PREFIX, DESCRIPTOR_SUFFIX
from errors import DescriptorBuildFailed, InvalidInput
from transport_engine import TransportEngine

logger = logging.getLogger("DescriptorBuilder")


@dataclass(frozen=True)
class Descriptor:
    data: bytes
    path: str


def validate_source(source_path) -> str:
    if not source_path or not os.path.isfile(source_path):
        raise InvalidInput(f"Data file to be seeded does not exist: {source_path}")
    if not os.access(source_path, os.R_OK):
        raise InvalidInput(f"Data file is not readable: {source_path}")
    return os.path.abspath(source_path)


class DescriptorBuilder:
    """Builds a private single-file descriptor through the engine."""
    def __init__(self, engine: TransportEngine, creator=DESCRIPTOR_CREATOR, private=True,
                 temp_dir: Optional[str] = None):
        self.engine = engine
        self.creator = creator
        self.private = private
        self.temp_dir = temp_dir

    def build(self, source_path) -> Descriptor:
        """
        Serialize a descriptor for ``source_path`` and write it to a temp file.

        The caller owns the returned file and must delete it; prefer ``open``.
        """
        source_path = validate_source(source_path)

        try:
            data = self.engine.create_descriptor(source_path, self.creator, self.private)
        except Exception as e:
            raise DescriptorBuildFailed(f"Failed to create descriptor for {source_path}: {e}") from e
        if not data:
            raise DescriptorBuildFailed(f"Engine returned an empty descriptor for {source_path}")

        target_dir = self.temp_dir or os.path.dirname(source_path)
        try:
            fd, path = tempfile.mkstemp(prefix=DESCRIPTOR_PREFIX, suffix=DESCRIPTOR_SUFFIX, dir=target_dir)
        except OSError as e:
            raise DescriptorBuildFailed(f"Cannot create descriptor file in {target_dir}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
        except OSError as e:
            _discard(path)
            raise DescriptorBuildFailed(f"Failed to write descriptor {path}: {e}") from e

        logger.debug(f"Descriptor for {os.path.basename(source_path)} written to {path} ({len(data)} bytes)")
        return Descriptor(data, path)

    @contextmanager
    def open(self, source_path):
        descriptor = self.build(source_path)
        try:
            yield descriptor
        finally:
            _discard(descriptor.path)


def _discard(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not delete temporary descriptor {path}: {e}")
