"""Exception types raised by the scrape workflow engine."""


class ScrapeError(Exception):
    """Base class for every error the scrape engine raises"""


class ConfigError(ScrapeError):
    """Invalid caller input or settings, raised before any session is opened"""


class ActionNotFound(ScrapeError):
    """Neither the structural nor the semantic instruction could be resolved"""


class SequenceTimeout(ScrapeError):
    """A bounded wait inside a workflow step elapsed"""


class StepFailed(ScrapeError):
    """A workflow step failed and the sequence was aborted"""

    def __init__(self, step_id: str, cause: Exception):
        self.step_id = step_id
        self.cause = cause
        super().__init__(f"step {step_id} failed: {cause}")


class ArtifactError(ScrapeError):
    """The download tracker could not obtain a document"""


class PopupTimeout(ArtifactError):
    pass


class DownloadTimeout(ArtifactError):
    pass


class NoArtifact(ArtifactError):
    pass


class StreamError(ArtifactError):
    """The download byte stream failed mid-read"""


class UploadError(ScrapeError):
    """The storage sink rejected or failed the write"""


class SessionCloseError(ScrapeError):
    """Closing the browser session failed; logged only"""
