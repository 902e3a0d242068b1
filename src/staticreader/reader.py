"""File reader: discovery, optional incremental filtering and content reading."""

import os
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Union

import structlog

from staticreader.discovery import discover_files
from staticreader.incremental.manager import IncrementalFilter
from staticreader.models.config import ReaderOptions, validate_options
from staticreader.models.document import Document, Header

logger = structlog.get_logger(__name__)


class FileReader:
    """Iterable over the documents of a directory.

    Each iteration discovers the files, filters them when incremental mode is
    on, and yields one `Document` per file. The incremental marker is only
    recorded once the iteration ran to completion, so an aborted run is read
    again in full next time.
    """

    def __init__(
        self,
        options: Union[ReaderOptions, Mapping[str, Any], None] = None,
        **kwargs: Any,
    ):
        if isinstance(options, ReaderOptions) and not kwargs:
            self.options = options
        else:
            data: Dict[str, Any] = {}
            if isinstance(options, ReaderOptions):
                data.update(options.model_dump(exclude_unset=True))
            elif options is not None:
                data.update(options)
            data.update(kwargs)
            self.options = validate_options(ReaderOptions, data, "File reader")

    @property
    def default_key(self) -> str:
        """`<cwd>:<pattern>` with list patterns joined by commas."""
        return f"{self.options.cwd.as_posix()}:{','.join(self.options.patterns)}"

    def incremental_filter(self, cwd: Optional[Path] = None) -> Optional[IncrementalFilter]:
        """Build the incremental filter of this reader, or None when disabled."""
        incremental = self.options.incremental
        if incremental is False:
            return None
        settings: Dict[str, Any] = {} if incremental is True else dict(incremental)
        options = {
            "key": self.default_key,
            "tracking_root": cwd or self.options.cwd,
            **settings,
        }
        return IncrementalFilter(options)

    def __iter__(self) -> Iterator[Document]:
        cwd = Path(os.path.abspath(self.options.cwd))
        files = discover_files(
            cwd, self.options.patterns, self.options.ignore, dot=self.options.dot
        )

        incremental = self.incremental_filter(cwd)
        if incremental is not None:
            files = incremental.filter(files)

        logger.debug("reader_started", cwd=str(cwd), files=len(files))
        for file in files:
            yield Document(
                header=Header.from_path(cwd, file),
                body=file.read_text(encoding=self.options.encoding),
            )

        if incremental is not None:
            incremental.finalize()


def read_files(**kwargs: Any) -> FileReader:
    """Shortcut for `FileReader(**kwargs)`."""
    return FileReader(**kwargs)
