"""Custom exceptions for the schema resolution engine."""


class SchemaResolutionError(Exception):
    """Base exception for k8s-yaml-schemas errors."""
    pass


class ConfigurationError(SchemaResolutionError):
    """Raised when a source registry entry can never be satisfied (e.g. no url_template)."""
    pass


class CatalogListingError(SchemaResolutionError):
    """Raised when a remote catalog listing cannot be retrieved or decoded."""
    pass


class UnsupportedDocumentError(SchemaResolutionError):
    """Raised when a document holds several resources and splitting is disabled."""
    pass
