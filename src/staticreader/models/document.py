"""Documents yielded by the reader."""

import posixpath
from pathlib import Path

from pydantic import BaseModel, Field


class Header(BaseModel):
    """Path metadata of a read file.

    Example for `/project/pages/about/company.md` read from `/project/pages`:
    cwd `/project/pages`, path `about/company.md`, dirname `about`,
    basename `company`, extname `.md`.
    """

    cwd: str = Field(..., description="Absolute directory the file was read from")
    path: str = Field(..., description="Path relative to cwd, forward slashes")
    dirname: str = Field(..., description="Directory part of path, '.' at top level")
    basename: str = Field(..., description="File name without extension")
    extname: str = Field(..., description="Extension including the dot, or ''")

    @classmethod
    def from_path(cls, cwd: Path, file: Path) -> "Header":
        relative = Path(file).relative_to(cwd).as_posix()
        stem, extname = posixpath.splitext(posixpath.basename(relative))
        return cls(
            cwd=str(cwd),
            path=relative,
            dirname=posixpath.dirname(relative) or ".",
            basename=stem,
            extname=extname,
        )


class Document(BaseModel):
    """A read file: header metadata plus the decoded body."""

    header: Header
    body: str
