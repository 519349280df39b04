"""Compilers for non-source files.

A compiler turns the contents of a file the parser can't read directly (e.g.
Markdown, CSS, Vue) into source text whose imports can be extracted. Compilers
are plain callables taking (text, path) and returning source text, registered
per file extension.
"""
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set

Compiler = Callable[[str, str], str]

DEFAULT_EXTENSIONS = ('js', 'mjs', 'cjs', 'jsx', 'ts', 'mts', 'cts', 'tsx')


class CompilerError(Exception):
    """Raised when a compiler can't be run or fails for a file."""


def normalize_extension(extension: str) -> str:
    """'.MD' -> 'md'"""
    return extension.lstrip('.').lower()


def source_glob(extensions: Iterable[str] = ()) -> str:
    """Build the brace include pattern covering source and compiled extensions.

    Args:
        extensions: Extra extensions (with or without leading dot)

    Returns:
        Glob such as '**/*.{js,jsx,md,ts}'
    """
    merged = sorted(set(DEFAULT_EXTENSIONS) | {normalize_extension(ext) for ext in extensions})
    if len(merged) == 1:
        return f'**/*.{merged[0]}'
    return '**/*.{' + ','.join(merged) + '}'


class CompilerRegistry:
    """Extension-keyed compiler lookup."""

    def __init__(self, compilers: Optional[Dict[str, Compiler]] = None):
        """Initialize registry.

        Args:
            compilers: Initial mapping of extension -> compiler
        """
        self._compilers: Dict[str, Compiler] = {}
        for extension, compiler in (compilers or {}).items():
            self.register(extension, compiler)

    def register(self, extension: str, compiler: Compiler) -> None:
        """Register (or replace) the compiler for an extension.

        Raises:
            CompilerError: If compiler is not callable
        """
        if not callable(compiler):
            raise CompilerError(f"Compiler for '{extension}' is not callable")
        self._compilers[normalize_extension(extension)] = compiler

    @property
    def extensions(self) -> Set[str]:
        return set(self._compilers)

    def get(self, file_path: str | Path) -> Optional[Compiler]:
        extension = os.path.splitext(str(file_path))[1]
        return self._compilers.get(normalize_extension(extension)) if extension else None

    def has_compiler(self, file_path: str | Path) -> bool:
        return self.get(file_path) is not None

    def compile(self, text: str, file_path: Optional[str | Path]) -> str:
        """Run the matching compiler over a file's contents.

        Args:
            text: Raw file contents
            file_path: Path of the file; compilers always receive it

        Returns:
            Compiled source text (text unchanged if no compiler matches)

        Raises:
            CompilerError: If file_path is missing, the compiler fails, or it
                           returns something other than a string
        """
        if not file_path:
            raise CompilerError("Path not passed to compiler")

        compiler = self.get(file_path)
        if compiler is None:
            return text

        try:
            result = compiler(text, str(file_path))
        except Exception as exc:
            raise CompilerError(f"Error in compiler for {file_path}: {exc}") from exc

        if not isinstance(result, str):
            raise CompilerError(
                f"Compiler for {file_path} returned {type(result).__name__}, expected str"
            )
        return result
