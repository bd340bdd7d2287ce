"""
Wrapper Renderer

Generate the wrapper source used by wrap mode: a module importing the
original handler and exporting it decorated by the Thundra agent.
"""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from .exceptions import UnsupportedLanguageError

TEMPLATE_DIR = Path(__file__).parent / "templates"

WRAPPER_EXTENSIONS = {
    "node": "js",
    "python": "py",
}


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def wrapper_extension(language: str) -> str:
    try:
        return WRAPPER_EXTENSIONS[language]
    except KeyError:
        raise UnsupportedLanguageError(language) from None


def wrapper_file_name(function_name: str, language: str) -> str:
    """`{function}-thundra.{ext}`"""
    return f"{function_name}-thundra.{wrapper_extension(language)}"


def render_wrapper(
    language: str,
    module_path: str,
    method: str,
    dependency_dir: str | None = None,
    root_prefix: str = "../",
) -> str:
    """
    Render the wrapper source for one function.

    Args:
        language: node or python
        module_path: module of the original handler (`src/app` for node, `src.app` for python)
        method: exported handler symbol
        dependency_dir: directory holding locally installed dependencies (optional)
        root_prefix: relative path from the wrapper directory to the service root

    Values are substituted as-is.
    """
    template = _environment().get_template(f"wrapper.{wrapper_extension(language)}.j2")
    return template.render(
        module_path=module_path,
        method=method,
        dependency_dir=dependency_dir,
        root_prefix=root_prefix,
    )
