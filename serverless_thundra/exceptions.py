"""
Custom exception classes.

Represent errors raised while instrumenting function declarations.
Recoverable conditions are reported through the log sink instead.
"""


class ThundraPluginError(Exception):
    """Base exception class for the plugin."""

    pass


class ConfigurationError(ThundraPluginError):
    """Raised when a configuration value cannot be interpreted."""

    def __init__(self, key: str, value: object, detail: str = ""):
        self.key = key
        self.value = value
        message = f"Invalid value for {key}: {value!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnsupportedLanguageError(ThundraPluginError):
    """Raised when no attachment strategy or wrapper exists for a language."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"Thundra does not support language: {language}")


class LibraryNotInstalledError(ThundraPluginError):
    """Raised when the Thundra agent library is missing for a language in use."""

    def __init__(self, language: str, package: str):
        self.language = language
        self.package = package
        super().__init__(
            f"Thundra's {language} library ({package}) must be installed "
            "in order to use this plugin!"
        )


class LayerVersionLookupError(ThundraPluginError):
    """Raised when the latest layer version cannot be resolved."""

    def __init__(self, detail: str, runtime: str | None = None, region: str | None = None):
        self.runtime = runtime
        self.region = region
        self.detail = detail
        if runtime:
            super().__init__(
                f"Could not resolve latest Thundra layer for {runtime} in {region}: {detail}"
            )
        else:
            super().__init__(detail)
