"""tree-sitter grammar loading for the structural extractors.

Grammars come from pre-compiled packages (``pip install tree-sitter-go``);
nothing is compiled at runtime. Loaded languages and parsers are cached per
process.
"""

from __future__ import annotations

import importlib

from tree_sitter import Language, Parser

# language name -> (module name, function returning the grammar)
LANGUAGE_MODULES: dict[str, tuple[str, str]] = {
    "go": ("tree_sitter_go", "language"),
}

_language_cache: dict[str, Language] = {}
_parser_cache: dict[str, Parser] = {}


def get_language(language: str) -> Language:
    """Return the tree-sitter Language for *language*.

    Raises:
        ValueError: If no grammar is registered for *language*.
        ImportError: If the grammar package is not installed.
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        ) from None

    lang = Language(getattr(module, func_name)())
    _language_cache[language] = lang
    return lang


def get_parser(language: str) -> Parser:
    """Return a cached Parser bound to *language*."""
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    return parser
