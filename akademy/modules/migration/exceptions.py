"""Errors raised by the Strapi migration pipeline.

Business failures (an insert rejected by the store) are reported in the
result summary instead; these exceptions abort the run.
"""


class MigrationError(Exception):
    """Base class for errors that abort a migration run."""


class MigrationConfigError(MigrationError):
    """A required secret or URL is missing."""


class StrapiFetchError(MigrationError):
    """The CMS returned a non-success response or could not be reached."""


class LookupPreloadError(MigrationError):
    """A canonical lookup table could not be loaded from the store."""


class DuplicateCheckError(MigrationError):
    """The existence check against the agreements table failed."""


class SeasonResolutionError(MigrationError):
    """No single active season exists for a headquarter (abort policy only)."""


class MigrationInProgressError(MigrationError):
    """Another migration run holds the single-flight guard."""
